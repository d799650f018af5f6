"""Face normalization building blocks (detector/eyes/aligner/illumination).

Every stage takes its classifiers and configuration explicitly; nothing here
keeps process-wide state, so the same objects can be shared across threads once
the `DetectorBundle` has been loaded.
"""
