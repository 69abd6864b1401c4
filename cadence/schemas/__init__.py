from .cascade import (
    KIND_HEAD_OUTPUT_V1,
    KIND_STIMULUS_V1,
    ChainProfile,
    HeadOutputV1,
    StimulusV1,
)
