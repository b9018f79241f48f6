"""
Blendrec DJ Compatibility Scoring
Tempo / energy / key compatibility between a seed and a candidate
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from ..schemas.dj import DJScoreResult
from ..schemas.songs import Song


# =============================================================================
# Thresholds
# =============================================================================

# Relative tempo difference bands (fraction of the seed tempo).
# Empirical policy constants; tune here.
TEMPO_PERFECT = 0.01
TEMPO_SEAMLESS = 0.03
TEMPO_GOOD = 0.05
TEMPO_ADJUSTABLE = 0.08
TEMPO_DIFFICULT = 0.20
TEMPO_HALF_DOUBLE = 0.03
TEMPO_FLOOR = 0.1

NEUTRAL_SCORE = 0.5
MIN_DJ_SCORE = 0.5


@dataclass(frozen=True)
class DJWeights:
    """Weights of the DJ sub-scores"""
    tempo: float = 0.40
    energy: float = 0.35
    key: float = 0.25


DEFAULT_DJ_WEIGHTS = DJWeights()


@dataclass(frozen=True)
class ComponentScore:
    """One sub-score with its relationship label"""
    score: float
    relationship: str
    diff: Optional[float] = None
    diff_percent: Optional[float] = None


# =============================================================================
# Tempo
# =============================================================================

def score_tempo(seed_bpm: Optional[float], candidate_bpm: Optional[float]) -> ComponentScore:
    """
    Score how well the candidate tempo follows the seed tempo.

    Bands are checked in precedence order; half-time / double-time is
    checked before the wider "adjustable" band because it is musically
    valid despite a large raw difference.

    Args:
        seed_bpm: seed tempo in beats/minute
        candidate_bpm: candidate tempo in beats/minute

    Returns:
        ComponentScore with diff (candidate - seed) and diff_percent
        relative to the seed tempo
    """
    if not seed_bpm or not candidate_bpm or seed_bpm <= 0 or candidate_bpm <= 0:
        return ComponentScore(NEUTRAL_SCORE, "unknown")

    diff = candidate_bpm - seed_bpm
    pct = abs(diff) / seed_bpm

    if abs(diff) < 1:
        return ComponentScore(1.0, "exact match", diff, pct)

    if pct <= TEMPO_PERFECT:
        return ComponentScore(0.98, "perfect match", diff, pct)

    if pct <= TEMPO_SEAMLESS:
        score = 0.90 + (1 - pct / TEMPO_SEAMLESS) * 0.08
        return ComponentScore(score, "seamless transition", diff, pct)

    if pct <= TEMPO_GOOD:
        score = 0.75 + (1 - pct / TEMPO_GOOD) * 0.15
        return ComponentScore(score, "good match", diff, pct)

    half = seed_bpm / 2
    if abs(candidate_bpm - half) / half <= TEMPO_HALF_DOUBLE:
        return ComponentScore(0.80, "half-time match", diff, pct)

    double = seed_bpm * 2
    if abs(candidate_bpm - double) / double <= TEMPO_HALF_DOUBLE:
        return ComponentScore(0.80, "double-time match", diff, pct)

    if pct <= TEMPO_ADJUSTABLE:
        score = 0.50 + (1 - pct / TEMPO_ADJUSTABLE) * 0.25
        return ComponentScore(score, "requires tempo adjustment", diff, pct)

    if pct <= TEMPO_DIFFICULT:
        span = TEMPO_DIFFICULT - TEMPO_ADJUSTABLE
        score = 0.30 * (1 - (pct - TEMPO_ADJUSTABLE) / span)
        return ComponentScore(max(TEMPO_FLOOR, score), "difficult transition", diff, pct)

    return ComponentScore(TEMPO_FLOOR, "tempo mismatch", diff, pct)


# =============================================================================
# Energy
# =============================================================================

def energy_compatibility(seed_energy: float, candidate_energy: float, direction: str = "any") -> ComponentScore:
    """
    Directional energy compatibility.

    direction is one of rising / falling / stable / any. A change against the
    requested direction is judged like "any".
    """
    diff = candidate_energy - seed_energy
    abs_diff = abs(diff)

    if abs_diff <= 0.1:
        return ComponentScore(0.95, "same energy level", diff)

    if direction == "rising" and diff > 0:
        if diff <= 0.2:
            return ComponentScore(0.90, "gentle energy rise", diff)
        if diff <= 0.35:
            return ComponentScore(0.80, "moderate energy rise", diff)
        return ComponentScore(0.65, "large energy jump up", diff)

    if direction == "falling" and diff < 0:
        if abs_diff <= 0.2:
            return ComponentScore(0.90, "gentle energy drop", diff)
        if abs_diff <= 0.35:
            return ComponentScore(0.80, "moderate energy drop", diff)
        return ComponentScore(0.65, "large energy drop", diff)

    if direction == "stable":
        if abs_diff <= 0.15:
            return ComponentScore(0.85, "energy maintained", diff)
        if abs_diff <= 0.25:
            return ComponentScore(0.65, "slight energy change", diff)
        return ComponentScore(0.40, "energy level mismatch", diff)

    if abs_diff <= 0.2:
        return ComponentScore(0.85, "similar energy", diff)
    if abs_diff <= 0.35:
        return ComponentScore(0.70, "moderate energy shift", diff)
    if abs_diff <= 0.5:
        return ComponentScore(0.50, "significant energy shift", diff)
    return ComponentScore(0.30, "energy mismatch", diff)


def score_energy(
    seed_energy: Optional[float],
    candidate_energy: Optional[float],
    direction: str = "any"
) -> ComponentScore:
    if seed_energy is None or candidate_energy is None:
        return ComponentScore(NEUTRAL_SCORE, "unknown")
    return energy_compatibility(seed_energy, candidate_energy, direction)


# =============================================================================
# Key (circle of fifths)
# =============================================================================

_PITCH_CLASS = {"C": 0, "D": 2, "E": 4, "F": 5, "G": 7, "A": 9, "B": 11}
_ACCIDENTAL = {"": 0, "#": 1, "♯": 1, "b": -1, "♭": -1}
_MINOR_SUFFIXES = {"m", "min", "minor"}
_MAJOR_SUFFIXES = {"", "maj", "major"}

_KEY_RE = re.compile(r"^([A-Ga-g])([#b♯♭]?)\s*([A-Za-z]*)$")
_CAMELOT_RE = re.compile(r"^(\d{1,2})([ABab])$")


def key_position(key: Optional[str]) -> Optional[Tuple[int, str]]:
    """
    Map a key name to (circle-of-fifths position, mode).

    Majors and minors are tagged independently; a minor takes the position
    of its relative major ("Am" -> (0, "minor"), "C" -> (0, "major")).
    Camelot notation ("8A", "8B") is accepted as well.

    Returns:
        (position 0-11, "major" | "minor"), or None if unrecognized
    """
    if not key:
        return None
    text = key.strip()

    camelot = _CAMELOT_RE.match(text)
    if camelot:
        number = int(camelot.group(1))
        if not 1 <= number <= 12:
            return None
        mode = "minor" if camelot.group(2).upper() == "A" else "major"
        return (number - 8) % 12, mode

    match = _KEY_RE.match(text)
    if not match:
        return None
    letter, accidental, suffix = match.groups()
    suffix = suffix.lower()
    if suffix in _MINOR_SUFFIXES:
        mode = "minor"
    elif suffix in _MAJOR_SUFFIXES:
        mode = "major"
    else:
        return None

    pitch = (_PITCH_CLASS[letter.upper()] + _ACCIDENTAL[accidental]) % 12
    if mode == "minor":
        pitch = (pitch + 3) % 12
    return (pitch * 7) % 12, mode


def _tonic(position: int, mode: str) -> int:
    """Pitch class of the tonic for a (position, mode) pair"""
    pitch = (position * 7) % 12
    return (pitch - 3) % 12 if mode == "minor" else pitch


def score_key(seed_key: Optional[str], candidate_key: Optional[str]) -> ComponentScore:
    """Harmonic compatibility from circle-of-fifths distance"""
    if not seed_key or not candidate_key:
        return ComponentScore(NEUTRAL_SCORE, "unknown")

    seed = key_position(seed_key)
    cand = key_position(candidate_key)
    if seed is None or cand is None:
        return ComponentScore(NEUTRAL_SCORE, "key not recognized")

    (seed_pos, seed_mode), (cand_pos, cand_mode) = seed, cand
    raw = abs(seed_pos - cand_pos)
    distance = min(raw, 12 - raw)

    if seed_pos == cand_pos and seed_mode == cand_mode:
        return ComponentScore(1.0, "same key")
    if seed_pos == cand_pos:
        return ComponentScore(0.9, "relative major/minor")
    if _tonic(seed_pos, seed_mode) == _tonic(cand_pos, cand_mode):
        return ComponentScore(0.8, "parallel major/minor")
    if distance == 1:
        return ComponentScore(0.8, "dominant")
    if distance == 5:
        return ComponentScore(0.7, "subdominant")
    if distance <= 2:
        return ComponentScore(0.6, "close key")
    return ComponentScore(0.2, "key clash")


# =============================================================================
# Composite
# =============================================================================

def _summary(total: float) -> str:
    if total >= 0.85:
        return "Excellent DJ transition"
    if total >= 0.70:
        return "Good DJ transition"
    if total >= 0.55:
        return "Acceptable transition"
    if total >= 0.40:
        return "Challenging transition"
    return "Poor transition match"


def calculate_dj_score(
    seed: Song,
    candidate: Song,
    weights: DJWeights = DEFAULT_DJ_WEIGHTS,
    direction: str = "any"
) -> DJScoreResult:
    """
    Combine tempo, energy and key compatibility of candidate after seed.

    Tempo is a hard gate: a pair is only recommended when the total clears
    MIN_DJ_SCORE and the tempo sub-score does too.
    """
    tempo = score_tempo(seed.tempo, candidate.tempo)
    energy = score_energy(seed.energy, candidate.energy, direction)
    key = score_key(seed.key, candidate.key)

    total = (
        tempo.score * weights.tempo
        + energy.score * weights.energy
        + key.score * weights.key
    )

    return DJScoreResult(
        total_score=total,
        tempo_score=tempo.score,
        energy_score=energy.score,
        key_score=key.score,
        tempo_relationship=tempo.relationship,
        energy_relationship=energy.relationship,
        key_relationship=key.relationship,
        is_recommended=total >= MIN_DJ_SCORE and tempo.score >= MIN_DJ_SCORE,
        summary=_summary(total),
        tempo_diff=tempo.diff,
        tempo_diff_percent=tempo.diff_percent,
        energy_diff=energy.diff,
    )
