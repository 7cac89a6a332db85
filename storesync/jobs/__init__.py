from .job_store import JobStore
from .job_repository import JobRepository
from .migration_queue import JobQueue
from .queue import DispatchQueue

__all__ = ["JobStore", "JobRepository", "JobQueue", "DispatchQueue"]
