"""
Blendrec Genre Hierarchy
Static parent-group table with aliases and hierarchical similarity
"""

import re
from typing import Dict, List, Optional, Set

from .base import RelatedGenre


# =============================================================================
# Hierarchy table
# =============================================================================

GENRE_HIERARCHY: Dict[str, List[str]] = {
    "pop": ["dance pop", "electropop", "synth-pop", "indie pop", "art pop", "teen pop", "k-pop", "j-pop", "bedroom pop", "hyperpop"],
    "rock": ["alternative rock", "indie rock", "classic rock", "hard rock", "punk rock", "post-punk", "new wave", "shoegaze", "grunge", "garage rock", "psychedelic rock", "prog rock", "art rock", "noise rock"],
    "hip hop": ["trap", "southern hip hop", "east coast hip hop", "west coast hip hop", "underground hip hop", "alternative hip hop", "experimental hip hop", "conscious hip hop", "gangster rap", "boom bap", "cloud rap", "emo rap", "drill", "grime", "lo-fi hip hop"],
    "electronic": ["house", "techno", "dubstep", "trance", "drum and bass", "ambient", "idm", "synthwave", "darkwave", "industrial", "breakbeat", "uk garage", "future bass", "lo-fi house", "dance"],
    "r&b": ["soul", "neo soul", "contemporary r&b", "funk", "quiet storm", "new jack swing", "alternative r&b"],
    "latin": ["reggaeton", "latin pop", "salsa", "bachata", "latin hip hop", "latin rock", "corridos", "regional mexican"],
    "country": ["modern country", "country rock", "alt-country", "americana", "bluegrass", "outlaw country"],
    "jazz": ["smooth jazz", "jazz fusion", "bebop", "cool jazz", "free jazz", "nu jazz", "acid jazz"],
    "classical": ["orchestra", "chamber music", "opera", "baroque", "romantic era", "contemporary classical", "minimalism"],
    "metal": ["heavy metal", "death metal", "black metal", "thrash metal", "doom metal", "progressive metal", "metalcore", "deathcore", "nu metal"],
    "folk": ["indie folk", "folk rock", "americana", "singer-songwriter", "acoustic", "freak folk"],
    "reggae": ["dancehall", "dub", "roots reggae", "ska"],
    "punk": ["punk rock", "hardcore punk", "pop punk", "post-hardcore", "emo", "screamo"],
    "experimental": ["avant-garde", "noise", "drone", "glitch", "musique concrete", "art pop", "dark ambient"],
    "world": ["afrobeat", "afropop", "highlife", "bossa nova", "flamenco", "bollywood"],
}

GENRE_ALIASES: Dict[str, str] = {
    # hip hop
    "hiphop": "hip hop",
    "hip-hop": "hip hop",
    "hip_hop": "hip hop",
    "rap": "hip hop",
    # electronic
    "edm": "electronic",
    "electronica": "electronic",
    "dance music": "dance",
    "lofi house": "lo-fi house",
    "lo fi house": "lo-fi house",
    "lofi": "lo-fi hip hop",
    "lo-fi": "lo-fi hip hop",
    "dnb": "drum and bass",
    "d&b": "drum and bass",
    "drum n bass": "drum and bass",
    "drum & bass": "drum and bass",
    # r&b
    "rnb": "r&b",
    "r and b": "r&b",
    "r_and_b": "r&b",
    "rhythm and blues": "r&b",
    # rock
    "alt rock": "alternative rock",
    "alt-rock": "alternative rock",
    "indie": "indie rock",
    "post punk": "post-punk",
    "synth pop": "synth-pop",
    "new-wave": "new wave",
}

SIM_EXACT = 1.0
SIM_PARENT_CHILD = 0.8
SIM_SIBLING = 0.6
SIM_CONTAINS = 0.4

_PREFIX_RE = re.compile(r"^the\s+")
_SUFFIX_RE = re.compile(r"\s+music$")
_SPACE_RE = re.compile(r"\s+")


def _build_parent_index(hierarchy: Dict[str, List[str]]) -> Dict[str, Set[str]]:
    # a child may sit under several parents (e.g. americana)
    index: Dict[str, Set[str]] = {}
    for parent, children in hierarchy.items():
        for child in children:
            index.setdefault(child.lower(), set()).add(parent)
    return index


class StaticGenreHierarchy:
    """In-memory genre hierarchy"""

    def __init__(
        self,
        hierarchy: Optional[Dict[str, List[str]]] = None,
        aliases: Optional[Dict[str, str]] = None
    ):
        self.hierarchy = hierarchy if hierarchy is not None else GENRE_HIERARCHY
        self.aliases = aliases if aliases is not None else GENRE_ALIASES
        self.parents_of = _build_parent_index(self.hierarchy)

    def normalize(self, genre: str) -> str:
        """Lowercase, collapse whitespace, strip filler words and resolve aliases"""
        if not genre:
            return ""
        lower = _SPACE_RE.sub(" ", genre.lower().strip())
        if lower in self.aliases:
            return self.aliases[lower]
        cleaned = _SUFFIX_RE.sub("", _PREFIX_RE.sub("", lower)).strip()
        return self.aliases.get(cleaned, cleaned)

    def similarity(self, genre_a: str, genre_b: str) -> float:
        """
        Hierarchical similarity of two genres.

        Returns:
            1.0 identical, 0.8 parent/child, 0.6 siblings,
            0.4 one name contains the other, else 0.0
        """
        a = self.normalize(genre_a)
        b = self.normalize(genre_b)
        if not a or not b:
            return 0.0
        if a == b:
            return SIM_EXACT

        parents_a = self.parents_of.get(a, set())
        parents_b = self.parents_of.get(b, set())
        if b in parents_a or a in parents_b:
            return SIM_PARENT_CHILD
        if parents_a & parents_b:
            return SIM_SIBLING
        if a in b or b in a:
            return SIM_CONTAINS
        return 0.0

    def related_genres(self, genre: str, n: int = 10) -> List[RelatedGenre]:
        """Children and parents first (0.8), then siblings (0.6)"""
        normalized = self.normalize(genre)
        scores: Dict[str, float] = {}

        for child in self.hierarchy.get(normalized, []):
            scores.setdefault(child, SIM_PARENT_CHILD)
        for parent in sorted(self.parents_of.get(normalized, set())):
            scores.setdefault(parent, SIM_PARENT_CHILD)
            for sibling in self.hierarchy.get(parent, []):
                if sibling != normalized:
                    scores.setdefault(sibling, SIM_SIBLING)

        ranked = sorted(scores.items(), key=lambda x: x[1], reverse=True)
        return [RelatedGenre(genre=g, score=s) for g, s in ranked[:n]]
