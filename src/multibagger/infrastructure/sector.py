"""Map free-text provider sector/industry strings onto the closed sector set."""
from __future__ import annotations

from typing import Optional, Sequence, Tuple

from multibagger.domain.models.scoring import Sector

# Ordered: the first rule with a matching keyword wins.
SECTOR_KEYWORDS: Sequence[Tuple[Sector, Tuple[str, ...]]] = (
    (Sector.SAAS, ("software", "saas", "cloud")),
    (Sector.BIOTECH, ("biotech", "pharma", "drug")),
    (Sector.SPACETECH, ("aerospace", "space", "satellite")),
    (Sector.QUANTUM, ("semiconductor", "quantum")),
    (Sector.HARDWARE, ("hardware", "electronic", "device")),
    (Sector.FINTECH, ("financial", "bank", "payment")),
    (Sector.CONSUMER, ("consumer", "retail", "beverage")),
    (Sector.INDUSTRIAL, ("industrial", "manufacturing")),
)


class SectorMapper:
    def map(self, sector: Optional[str], industry: Optional[str] = None) -> Sector:
        text = f"{sector or ''} {industry or ''}".lower()
        for tag, keywords in SECTOR_KEYWORDS:
            if any(keyword in text for keyword in keywords):
                return tag
        return Sector.OTHER

    def resolve(self, tag: Optional[str], sector: Optional[str], industry: Optional[str] = None) -> Sector:
        """Prefer an explicit closed-set tag, otherwise map the free text."""
        if tag:
            return Sector.parse(tag)
        return self.map(sector, industry)
