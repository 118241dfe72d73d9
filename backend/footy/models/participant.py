"""Per-participant running totals."""

from dataclasses import dataclass

from pydantic import BaseModel


def accuracy_percent(correct: int, total: int) -> int:
    """Percentage of correct picks, rounded half up. 0 when nothing was predicted."""
    if total <= 0:
        return 0
    # floor(correct / total * 100 + 0.5) in integer arithmetic
    return (correct * 200 + total) // (2 * total)


@dataclass
class AggregateIncrement:
    points: int = 0
    predictions: int = 0
    correct: int = 0

    def add(self, points: int, correct: bool) -> None:
        self.points += points
        self.predictions += 1
        if correct:
            self.correct += 1

    def merge(self, other: "AggregateIncrement") -> None:
        self.points += other.points
        self.predictions += other.predictions
        self.correct += other.correct

    @property
    def is_zero(self) -> bool:
        return not (self.points or self.predictions or self.correct)


class ParticipantAggregate(BaseModel):
    points: int = 0
    total_predictions: int = 0
    correct_predictions: int = 0
    accuracy: int = 0

    model_config = {"extra": "ignore"}

    def apply(self, inc: AggregateIncrement) -> "ParticipantAggregate":
        total = self.total_predictions + inc.predictions
        correct = self.correct_predictions + inc.correct
        return ParticipantAggregate(
            points=self.points + inc.points,
            total_predictions=total,
            correct_predictions=correct,
            accuracy=accuracy_percent(correct, total),
        )
