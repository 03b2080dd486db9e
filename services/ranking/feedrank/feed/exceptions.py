"""Feed domain exceptions (raised by service, caught by controller)."""


class InvalidCandidateError(Exception):
    """Candidate cannot be scored (missing author, negative counters)."""

    def __init__(self, item_id: object, reason: str) -> None:
        self.item_id = item_id
        self.reason = reason
        super().__init__(f"Candidate {item_id} is invalid: {reason}")


class CandidateFetchError(Exception):
    """The candidate supplier failed; nothing can be ranked."""


class ViewerRequiredError(Exception):
    """Personalised modes need an authenticated viewer."""


class ViewerNotFoundError(Exception):
    def __init__(self, viewer_id: object) -> None:
        self.viewer_id = viewer_id
        super().__init__(f"Viewer {viewer_id} not found.")


class RankingTimeoutError(Exception):
    def __init__(self, deadline_s: float) -> None:
        self.deadline_s = deadline_s
        super().__init__(f"Ranking exceeded its {deadline_s:g}s deadline.")
