from bunkhouse.core.exceptions import (
    AuthorizationError,
    BunkhouseError,
    ConflictError,
    NotFoundError,
    PreconditionError,
)


class Messages:
    """
    Centralized store for user-facing messages.
    """

    BED_TAKEN = "This bed was just taken. Please pick another."
    ALREADY_CLAIMED = "You already have a bed claimed for this weekend."
    SIGNUP_CLOSED = "Sign-up has closed."
    PERMISSION_DENIED = "You don't have permission to do that."
    NOT_FOUND = "We couldn't find that."
    CONFLICT = "Someone else just changed this. Please refresh and try again."

    def for_error(self, exc: BunkhouseError) -> str:
        """Map a domain error onto the text shown to the member."""
        if isinstance(exc, ConflictError):
            if exc.code == "bed_taken":
                return self.BED_TAKEN
            if exc.code == "already_claimed":
                return self.ALREADY_CLAIMED
            return self.CONFLICT
        if isinstance(exc, PreconditionError):
            if exc.code == "window_not_open":
                return self.SIGNUP_CLOSED
            return exc.message
        if isinstance(exc, AuthorizationError):
            return self.PERMISSION_DENIED
        if isinstance(exc, NotFoundError):
            return self.NOT_FOUND
        return exc.message


messages = Messages()
