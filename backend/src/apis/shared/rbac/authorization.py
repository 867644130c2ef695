"""Authorization service contract for relation-based policies."""

from abc import ABC, abstractmethod

# Policy vocabulary
USER_TYPE = "user"
PLATFORM_TYPE = "platform"
PLATFORM_OBJECT = "platform"
ADMINISTRATOR_RELATION = "administrator"


class AuthorizationService(ABC):
    """
    Client for the external authorization service.

    Policies are (subject_type, subject, relation, object, object_type) tuples.
    """

    @abstractmethod
    async def authorize(
        self,
        subject_type: str,
        subject: str,
        permission: str,
        object: str,
        object_type: str,
    ) -> bool:
        """Check whether the subject holds the permission on the object."""
        pass

    @abstractmethod
    async def add_policy(
        self,
        subject_type: str,
        subject: str,
        relation: str,
        object: str,
        object_type: str,
    ) -> bool:
        """
        Add a policy tuple.

        Returns:
            True if the policy was added
        """
        pass
