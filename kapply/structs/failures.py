"""
Structured failures of the manifest application and of the preconditions.

Every failure detected by the builders or by the precondition checks is raised
(or returned) as an `UpdateError` with a machine-readable reason, a message
safe to show to the cluster operators, and the name of the failed subject:
either an object identity (``namespace/name``) or a check name.

The lower-level cause, if any, is kept in ``nested`` for diagnostics only.
It is also chained as ``__cause__`` when the error is raised ``from`` it,
so that it is visible in the stack traces.

Errors of other types (e.g. K8s API errors, networking errors) are never
wrapped into these ones: they are passed through to the callers as is.
"""


class UpdateError(Exception):
    """ A structured failure of the update/rollout process. """

    def __init__(
            self,
            message: str,
            *,
            reason: str,
            name: str,
            nested: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.name = name
        self.nested = nested

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.message!r}, reason={self.reason!r}, name={self.name!r})'


class HealthError(UpdateError):
    """ The workload is not healthy yet; re-check it later. """


class DeletionError(UpdateError):
    """ The workload is being deleted; re-checks are useless in this attempt. """


class StatusDetails(Exception):
    """ A low-level diagnostic detail of a workload's status, as a nested cause. """
