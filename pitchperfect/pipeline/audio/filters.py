from typing import List

from .types import FilterChain, FilterStep, PitchShift, Tempo, TEMPO_STEP_MIN, TEMPO_STEP_MAX


def pitch_ratio(semitones: int) -> float:
    return 2 ** (semitones / 12)


def tempo_steps(speed: float) -> List[Tempo]:
    """
    Decompose a speed ratio into atempo steps that each stay within [0.5, 2.0].

    `remaining` is the part of the ratio still to apply, so after a x0.5 step it is
    divided by 0.5 (doubled) and climbs back into range; the steps multiply to `speed`.
    """
    if speed <= 0:
        raise ValueError(f"Speed must be positive, got {speed}")

    steps: List[Tempo] = []
    remaining = speed
    while remaining > TEMPO_STEP_MAX:
        steps.append(Tempo(TEMPO_STEP_MAX))
        remaining /= TEMPO_STEP_MAX
    while remaining < TEMPO_STEP_MIN:
        steps.append(Tempo(TEMPO_STEP_MIN))
        remaining /= TEMPO_STEP_MIN
    if remaining != 1:
        steps.append(Tempo(remaining))
    return steps


def plan_filters(pitch_shift: int, speed: float, base_rate: int = 44100) -> FilterChain:
    """Pitch resampling first, then tempo steps, so tempo acts on the shifted stream."""
    steps: List[FilterStep] = []
    if pitch_shift != 0:
        steps.append(PitchShift(ratio=pitch_ratio(pitch_shift), base_rate=base_rate))
    if speed != 1:
        steps.extend(tempo_steps(speed))
    return FilterChain(tuple(steps))
