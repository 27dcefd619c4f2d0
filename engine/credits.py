"""CreditAccountant – Credit-Bilanz der aktuellen Matrículas plus vorgemerkter Änderungen."""

from typing import TYPE_CHECKING

from pydantic import BaseModel

from engine.directory import Directory

if TYPE_CHECKING:
    from engine.ledger import SelectionLedger


class CreditSummary(BaseModel):
    """Credit-Übersicht für die Anzeige."""

    base: int        # aktuell eingeschriebene Credits
    added: int       # vorgemerkte Zugänge
    dropped: int     # vorgemerkte Abgänge
    delta: int
    projected: int
    ceiling: int
    remaining: int   # nie negativ

    def label(self) -> str:
        return f"{self.projected}/{self.ceiling} Credits ({self.delta:+d})"


class CreditAccountant:
    """Berechnet projizierte Credits und prüft gegen die Obergrenze.

    base_credits ist die Summe ALLER aktuellen Matrículas. Zurückgezogene
    Matrículas werden über das Ledger abgezogen, nicht hier.
    """

    def __init__(self, directory: Directory, ceiling: int) -> None:
        if ceiling < 0:
            raise ValueError(f"Credit-Obergrenze darf nicht negativ sein: {ceiling}")
        self.directory = directory
        self.ceiling = ceiling
        self.base_credits = sum(e.credits for e in directory.entries)

    def projected_credits(self, ledger: "SelectionLedger") -> int:
        return self.base_credits + ledger.credit_delta

    def would_exceed(self, ledger: "SelectionLedger", extra: int) -> bool:
        """True wenn projected + extra die Obergrenze überschreitet."""
        if extra < 0:
            raise ValueError(f"Credits dürfen nicht negativ sein: {extra}")
        return self.projected_credits(ledger) + extra > self.ceiling

    def remaining(self, ledger: "SelectionLedger") -> int:
        return max(0, self.ceiling - self.projected_credits(ledger))

    def summary(self, ledger: "SelectionLedger") -> CreditSummary:
        added = ledger.added_credits
        dropped = ledger.dropped_credits
        return CreditSummary(
            base=self.base_credits,
            added=added,
            dropped=dropped,
            delta=added - dropped,
            projected=self.projected_credits(ledger),
            ceiling=self.ceiling,
            remaining=self.remaining(ledger),
        )
