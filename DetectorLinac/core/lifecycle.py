"""Ownership and ordered release of process-scope resources."""

from typing import Callable, List, Optional, Tuple

from ..utils.validation import ResourceLifecycleError
from ..utils.logging import get_logger


logger = get_logger()


class ResourceLifecycleManager:
    """Owns the session, run manager and visualization manager.

    ``release_all`` releases them in the order session, run manager,
    visualization manager. Each resource is released exactly once, even
    when an earlier release fails; the first failure is raised after the
    remaining resources have been released.

    Usage:
        with ResourceLifecycleManager() as lifecycle:
            lifecycle.adopt_run_manager(run_manager)
            ...
    """

    # (slot, release method) in release order
    RELEASE_ORDER: Tuple[Tuple[str, str], ...] = (
        ('session', 'close'),
        ('run_manager', 'terminate'),
        ('vis_manager', 'close'),
    )

    def __init__(self):
        self.session = None
        self.run_manager = None
        self.vis_manager = None
        self.released: List[str] = []
        self._releasing = False
        self._done = False

    @property
    def is_released(self) -> bool:
        return self._done

    def adopt_session(self, session) -> None:
        self._adopt('session', session)

    def adopt_run_manager(self, run_manager) -> None:
        self._adopt('run_manager', run_manager)

    def adopt_vis_manager(self, vis_manager) -> None:
        self._adopt('vis_manager', vis_manager)

    def _adopt(self, slot: str, resource) -> None:
        if self._done or self._releasing:
            raise ResourceLifecycleError(f"Cannot adopt {slot}: resources have been released")
        if resource is None:
            raise ResourceLifecycleError(f"Cannot adopt {slot}: no resource given")
        if getattr(self, slot) is not None:
            raise ResourceLifecycleError(f"A {slot.replace('_', ' ')} has already been adopted")
        setattr(self, slot, resource)
        logger.debug(f"Adopted {slot}: {type(resource).__name__}")

    def release_all(self) -> None:
        """Release every adopted resource once, in order.

        Calling it again is a no-op.

        Raises:
            Exception: The first error raised by a release, after all releases ran
        """
        if self._done:
            return
        self._releasing = True
        first_error: Optional[BaseException] = None
        try:
            for slot, method in self.RELEASE_ORDER:
                resource = getattr(self, slot)
                if resource is None:
                    continue
                setattr(self, slot, None)
                release: Callable[[], None] = getattr(resource, method)
                try:
                    release()
                except Exception as e:
                    logger.error(f"Failed to release {slot}: {e}")
                    if first_error is None:
                        first_error = e
                self.released.append(slot)
        finally:
            self._releasing = False
            self._done = True
        if first_error is not None:
            raise first_error

    def __enter__(self) -> 'ResourceLifecycleManager':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.release_all()
            return
        try:
            self.release_all()
        except Exception as e:
            logger.error(f"Release error while handling {exc_type.__name__}: {e}")
