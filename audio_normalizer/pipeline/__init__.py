"""
This package contains the pipelines of the Audio Normalizer.

`FilePipeline` takes a single file through the stages of the normalization, and
`NormalizationScheduler` runs one of them per discovered file with bounded
concurrency, counting processed and failed files for the final summary.
"""
