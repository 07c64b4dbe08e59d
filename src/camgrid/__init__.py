"""Multi-camera grid merging: resample, tile, stamp timecode and encode."""
