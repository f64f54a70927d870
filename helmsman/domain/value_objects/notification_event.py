from dataclasses import dataclass, field


@dataclass(frozen=True)
class NotificationEvent:
    """
    Value Object for a structured event sent through the notification gateway.
    """
    title: str
    fields: dict[str, str] = field(default_factory=dict)
    severity: str = "critical"
    message: str = ""

    def __post_init__(self) -> None:
        if not self.title:
            raise ValueError("Notification title cannot be empty")
        if self.severity not in ("critical", "high", "medium", "low"):
            raise ValueError(f"Unknown severity: {self.severity!r}")
