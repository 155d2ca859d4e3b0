import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, List, Optional, Union
import logging

from .tag_filter import TagFilter

logger = logging.getLogger(__name__)


class HookScope(Enum):
    """Granularity a lifecycle hook applies to"""
    FEATURE = "feature"
    SCENARIO = "scenario"
    STEP = "step"


def _as_scope(scope: Union[str, HookScope]) -> HookScope:
    return scope if isinstance(scope, HookScope) else HookScope(scope.lower())


def _as_filter(tags: Union[None, str, TagFilter]) -> Optional[TagFilter]:
    if tags is None or isinstance(tags, TagFilter):
        return tags
    return TagFilter(tags)


@dataclass(frozen=True)
class Hook:
    """A before/after callable bound to one scope"""
    scope: HookScope
    handler: Callable
    order: int = 0
    tag_filter: Optional[TagFilter] = None

    @property
    def name(self) -> str:
        return getattr(self.handler, '__name__', repr(self.handler))

    def applies_to(self, tags: Iterable[str]) -> bool:
        return self.tag_filter is None or self.tag_filter.matches(tags)

    async def run(self) -> None:
        result = self.handler()
        if inspect.isawaitable(result):
            await result


@dataclass
class HookRegistry:
    """
    Lifecycle hooks for features, scenarios and steps.

    Before hooks run in ascending ``order`` (ties first-registered-first) and
    stop at the first error. After hooks run in descending ``order`` (ties
    last-registered-first), always all of them; the first error is raised
    once the list is done.
    """
    before_hooks: List[Hook] = field(default_factory=list)
    after_hooks: List[Hook] = field(default_factory=list)

    def add_before(self, hook: Hook) -> None:
        self.before_hooks.append(hook)
        logger.debug(f"Registered before-{hook.scope.value} hook: {hook.name} (order {hook.order})")

    def add_after(self, hook: Hook) -> None:
        self.after_hooks.append(hook)
        logger.debug(f"Registered after-{hook.scope.value} hook: {hook.name} (order {hook.order})")

    def before(self, scope: Union[str, HookScope] = HookScope.SCENARIO, order: int = 0,
               tags: Union[None, str, TagFilter] = None):
        """Decorator for before hooks"""

        def decorator(func):
            self.add_before(Hook(_as_scope(scope), func, order, _as_filter(tags)))
            return func

        return decorator

    def after(self, scope: Union[str, HookScope] = HookScope.SCENARIO, order: int = 0,
              tags: Union[None, str, TagFilter] = None):
        """Decorator for after hooks"""

        def decorator(func):
            self.add_after(Hook(_as_scope(scope), func, order, _as_filter(tags)))
            return func

        return decorator

    def ordered_before(self, scope: Union[str, HookScope], tags: Iterable[str] = ()) -> List[Hook]:
        scope = _as_scope(scope)
        tags = frozenset(tags)
        hooks = [hook for hook in self.before_hooks if hook.scope is scope and hook.applies_to(tags)]
        return sorted(hooks, key=lambda hook: hook.order)

    def ordered_after(self, scope: Union[str, HookScope], tags: Iterable[str] = ()) -> List[Hook]:
        scope = _as_scope(scope)
        tags = frozenset(tags)
        hooks = [hook for hook in reversed(self.after_hooks) if hook.scope is scope and hook.applies_to(tags)]
        return sorted(hooks, key=lambda hook: -hook.order)

    async def execute_before(self, scope: Union[str, HookScope], tags: Iterable[str] = ()) -> None:
        for hook in self.ordered_before(scope, tags):
            await hook.run()

    async def execute_after(self, scope: Union[str, HookScope], tags: Iterable[str] = ()) -> None:
        first_error = None
        for hook in self.ordered_after(scope, tags):
            try:
                await hook.run()
            except Exception as e:
                logger.debug(f"After hook {hook.name} failed: {e}")
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
