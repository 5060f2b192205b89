"""
Business Card Extraction Pipeline
Sequences OCR, local parsing, optional AI enhancement and reconciliation.

HYBRID APPROACH:
1. EasyOCR + heuristic parser always run locally (FREE)
2. If enabled and configured, Gemini refines the parse (nearly free)
3. Any Gemini failure, typed or not, falls back to the local parse, never to an error
"""

import asyncio
import logging
import time
import uuid
from enum import Enum
from typing import Any, Callable, Dict, Optional

from .ai_extractor import RemoteExtractionClient
from .errors import ExtractionError, NoTextFoundError, OcrError, RemoteExtractionError
from .models import (
    ExtractedCardFields,
    ExtractionOutcome,
    OcrFailed,
    ProcessingFailed,
    RawImage,
    Success,
)
from .ocr import OcrProvider
from .parser import CardFieldParser
from .reconciler import ResultReconciler

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    IDLE = "idle"
    OCR_RUNNING = "ocr_running"
    LOCAL_PARSED = "local_parsed"
    REMOTE_RUNNING = "remote_running"
    SKIPPED = "skipped"
    RECONCILED = "reconciled"
    DONE = "done"
    ERRORED = "errored"


StateListener = Callable[[str, PipelineState], None]


class ExtractionOrchestrator:
    """Complete pipeline for extracting contact fields from business cards.

    Every request runs OCR, then the local parser, then (optionally) the
    remote extractor, strictly in that order. Requests share no mutable
    state, so independent requests may run concurrently.
    """

    def __init__(
        self,
        ocr_provider: OcrProvider,
        remote_client: Optional[RemoteExtractionClient] = None,
        parser: Optional[CardFieldParser] = None,
        reconciler: Optional[ResultReconciler] = None,
        enable_enhancement: bool = True,
        remote_timeout: float = 30.0,
        state_listener: Optional[StateListener] = None,
    ):
        """
        Args:
            ocr_provider: Recognizes text on card images
            remote_client: AI extractor; None disables enhancement entirely
            parser: Local heuristic parser
            reconciler: Merges the local and AI records
            enable_enhancement: Default for the per-call enhance flag
            remote_timeout: Seconds to wait for the AI extractor before using the local parse
            state_listener: Called with (request_id, state) on every transition
        """
        self.ocr_provider = ocr_provider
        self.remote_client = remote_client
        self.parser = parser or CardFieldParser()
        self.reconciler = reconciler or ResultReconciler()
        self.enable_enhancement = enable_enhancement
        self.remote_timeout = remote_timeout
        self.state_listener = state_listener

        logger.info(
            f"ExtractionOrchestrator initialized (enhancement "
            f"{'available' if self.is_enhancement_available() else 'unavailable'})"
        )

    # ======================================================
    # PUBLIC API
    # ======================================================

    def is_enhancement_available(self) -> bool:
        return self.remote_client is not None and self.remote_client.is_available()

    def get_status(self) -> Dict[str, Any]:
        """Describe the configured stages for the status endpoint."""
        remote: Dict[str, Any] = {"configured": self.remote_client is not None}
        describe = getattr(self.remote_client, "describe", None)
        if callable(describe):
            remote.update(describe())
        remote["available"] = self.is_enhancement_available()

        return {
            "ocr_provider": type(self.ocr_provider).__name__,
            "enhancement_enabled": self.enable_enhancement,
            "enhancement_available": self.is_enhancement_available(),
            "remote_timeout": self.remote_timeout,
            "remote": remote,
        }

    async def process(
        self,
        image: RawImage,
        enhance: Optional[bool] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExtractionOutcome:
        """
        Process a business card image.

        Args:
            image: Encoded image bytes
            enhance: Run the AI extractor; defaults to enable_enhancement
            cancel_event: Setting it abandons an in-flight AI call

        Returns:
            Success, OcrFailed or ProcessingFailed
        """
        request_id = uuid.uuid4().hex[:8]
        start_time = time.time()
        self._transition(request_id, PipelineState.IDLE)

        try:
            self._transition(request_id, PipelineState.OCR_RUNNING)
            try:
                ocr_result = await self.ocr_provider.recognize(image)
            except NoTextFoundError as e:
                logger.warning(f"[{request_id}] No text found on image: {e}")
                self._transition(request_id, PipelineState.ERRORED)
                return OcrFailed(image=image)
            except OcrError as e:
                logger.error(f"[{request_id}] OCR failed: {e}")
                self._transition(request_id, PipelineState.ERRORED)
                return ProcessingFailed(error=e)

            logger.info(
                f"[{request_id}] OCR: {len(ocr_result.bounding_boxes)} lines, "
                f"confidence {ocr_result.confidence:.2%}"
            )

            fields = await self._parse_and_reconcile(
                request_id, ocr_result, ocr_result.recognized_text, image, enhance, cancel_event
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"[{request_id}] Unexpected pipeline failure: {e}")
            self._transition(request_id, PipelineState.ERRORED)
            return ProcessingFailed(error=_as_extraction_error(e))

        self._transition(request_id, PipelineState.DONE)
        elapsed = time.time() - start_time
        logger.info(
            f"⏱️ [{request_id}] Extraction completed in {elapsed:.2f}s "
            f"(source={fields.source.value}, confidence={fields.confidence:.2f})"
        )
        return Success(fields=fields, image=image)

    async def enhance_text(
        self,
        ocr_text: str,
        enhance: Optional[bool] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> ExtractedCardFields:
        """
        Parse text that was already recognized, optionally refined by the AI extractor.

        Remote failures degrade to the local parse exactly as in process().
        """
        request_id = uuid.uuid4().hex[:8]
        self._transition(request_id, PipelineState.IDLE)
        fields = await self._parse_and_reconcile(request_id, ocr_text, ocr_text, None, enhance, cancel_event)
        self._transition(request_id, PipelineState.DONE)
        return fields

    # ======================================================
    # STAGES
    # ======================================================

    async def _parse_and_reconcile(self, request_id, parse_input, ocr_text, image, enhance, cancel_event):
        local = self.parser.parse(parse_input)
        self._transition(request_id, PipelineState.LOCAL_PARSED)
        logger.info(f"[{request_id}] Local parse found {len(local.populated_fields())} fields")

        if not self._should_enhance(request_id, enhance):
            self._transition(request_id, PipelineState.SKIPPED)
            fields = self.reconciler.passthrough(local)
        else:
            self._transition(request_id, PipelineState.REMOTE_RUNNING)
            remote = await self._run_remote(request_id, ocr_text, image, cancel_event)
            fields = self.reconciler.enhance(local, remote) if remote is not None else self.reconciler.passthrough(local)

        self._transition(request_id, PipelineState.RECONCILED)
        return fields

    def _should_enhance(self, request_id: str, enhance: Optional[bool]) -> bool:
        wanted = self.enable_enhancement if enhance is None else enhance
        if not wanted:
            logger.debug(f"[{request_id}] Enhancement disabled for this request")
            return False
        if not self.is_enhancement_available():
            logger.info(f"[{request_id}] AI extractor unavailable - using local parse")
            return False
        return True

    async def _run_remote(
        self,
        request_id: str,
        ocr_text: str,
        image: Optional[RawImage],
        cancel_event: Optional[asyncio.Event],
    ) -> Optional[ExtractedCardFields]:
        """
        Run the AI extractor under the timeout and the cancel event.

        Returns:
            The remote record, or None when the local parse must be used
        """
        if cancel_event is not None and cancel_event.is_set():
            logger.info(f"[{request_id}] Cancelled before AI extraction - using local parse")
            return None

        task = asyncio.ensure_future(self.remote_client.extract(ocr_text, image))
        waiters = {task}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.ensure_future(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _ = await asyncio.wait(waiters, timeout=self.remote_timeout, return_when=asyncio.FIRST_COMPLETED)

            if task in done:
                if task.cancelled():
                    logger.warning(f"[{request_id}] AI extraction was cancelled - using local parse")
                    return None
                return task.result()

            if cancel_waiter is not None and cancel_waiter in done:
                logger.info(f"[{request_id}] AI extraction cancelled by caller - using local parse")
                return None

            logger.warning(
                f"[{request_id}] AI extraction timed out after {self.remote_timeout}s "
                f"(network_error) - using local parse"
            )
            return None
        except RemoteExtractionError as e:
            logger.warning(f"[{request_id}] AI extraction failed ({e.kind.value}): {e} - using local parse")
            return None
        except Exception as e:
            logger.error(
                f"[{request_id}] AI extraction raised {type(e).__name__}: {e} - using local parse",
                exc_info=True,
            )
            return None
        finally:
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()

    def _transition(self, request_id: str, state: PipelineState) -> None:
        logger.debug(f"[{request_id}] -> {state.value}")
        if self.state_listener is not None:
            self.state_listener(request_id, state)


def _as_extraction_error(error: Exception) -> ExtractionError:
    if isinstance(error, ExtractionError):
        return error
    wrapped = ExtractionError(f"{type(error).__name__}: {error}")
    wrapped.__cause__ = error
    return wrapped
