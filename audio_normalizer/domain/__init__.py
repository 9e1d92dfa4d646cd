"""
This package contains the core domain models of the Audio Normalizer.

The domain layer holds the immutable records that flow between the layers and the
rules that need no external tool to evaluate, such as the skip/normalize decision
and the per-codec encoding plan. Nothing in here launches a process or touches
the output directory.

Modules:
    exceptions.py: The exception hierarchy, rooted at `AudioNormalizerException`.
    process.py: `ProcessInvocation` and `ProcessOutcome`, the contract of the
                process runner.
    models.py: Input files, parsed ffprobe/loudnorm output, encoding plans, the
               uniform `StageResult` and the final `RunSummary`.
"""
