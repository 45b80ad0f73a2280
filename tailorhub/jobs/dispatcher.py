"""Job dispatcher interface for try-on generation work."""

from abc import ABC, abstractmethod

from tailorhub.tryon.models import TryOnJob


class JobDispatcher(ABC):
    """Abstract interface for running try-on jobs (in-process or elsewhere)."""

    @abstractmethod
    async def submit(self, job: TryOnJob) -> str:
        """Queue a job for the worker. Returns job_id."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher (e.g., start worker loop)."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher gracefully."""
        ...

    @property
    @abstractmethod
    def running(self) -> bool:
        ...

    @abstractmethod
    def pending_count(self) -> int:
        """Jobs waiting for the worker."""
        ...
