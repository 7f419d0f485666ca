"""Domain ports (interfaces) for collaborators that live outside the backend core."""

from abc import ABC, abstractmethod

from spotbridge.core.cancellation import CancellationToken


# Hey future me, IAuthorizer is the ONLY thing we know about OAuth. Login UI, PKCE dance,
# refresh-token storage - all of that belongs to the host. The implementation is expected
# to serialize its own refreshes (one refresh in flight, everyone else awaits it) and to
# honor the token while it waits. We just call get_access_token() before every request.
class IAuthorizer(ABC):
    """Source of bearer credentials for Web API requests."""

    @abstractmethod
    async def get_access_token(self, token: CancellationToken) -> str:
        """Return a valid access token, refreshing it if needed.

        Raises:
            Cancelled: If the token fires while a refresh is in progress
        """
        pass

    @abstractmethod
    def is_authenticated(self) -> bool:
        """Check whether the user has logged in."""
        pass


__all__ = ["IAuthorizer"]
