import logging
from typing import Optional

from .classifier import UNKNOWN_ERROR, classify
from .composer import RequestComposer
from .dispatcher import Dispatcher
from .exceptions import ClientError, ClientErrorKind
from .resolver import EnvironmentStore, VariableResolver
from .schemas import ClassifiedResult
from .session import WorkbenchSession
from .store import HistoryRecorder

logger = logging.getLogger("apiprobe.pipeline")


class Workbench:
    """
    Runs one send: resolve, compose, dispatch, classify.

    Every failure along the way comes back as an ``ErrorReport``. Nothing is
    queued or limited; concurrent sends are independent of each other.
    """

    def __init__(
        self,
        environments: EnvironmentStore,
        dispatcher: Dispatcher,
        history: Optional[HistoryRecorder] = None,
    ):
        self.resolver = VariableResolver(environments)
        self.composer = RequestComposer(self.resolver)
        self.dispatcher = dispatcher
        self.history = history

    async def send(self, session: WorkbenchSession) -> ClassifiedResult:
        draft = session.snapshot()
        if not draft.url.strip():
            return classify(ClientError(ClientErrorKind.MISSING_URL))

        try:
            request = await self.composer.compose(draft, session.active_environment_id)
        except ClientError as e:
            logger.info("Draft rejected before dispatch: %s", e)
            return classify(e)
        except Exception:
            logger.exception("Composing the request failed")
            return UNKNOWN_ERROR.model_copy()

        identity = session.user_id if session.is_authenticated else None
        try:
            outcome = await self.dispatcher.dispatch(request, identity)
            result = classify(outcome)
        except Exception:
            logger.exception("Dispatch of %s %s failed", request.method.value, request.url)
            result = UNKNOWN_ERROR.model_copy()

        if identity and self.history is not None:
            self.history.schedule(request.url, request.method.value, identity)
        return result
