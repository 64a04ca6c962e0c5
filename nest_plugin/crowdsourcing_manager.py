from __future__ import annotations

import logging
from typing import Callable, List, Optional, Protocol

from .crowdsourcing_api import ItemPage, NestApiError, NestCrowdsourcingClient
from .observation import ItemObservation, RemoteItemRecord
from .request_worker import RequestWorker

LOAD_ERROR_MESSAGE = "Failed to load data."


class ItemListener(Protocol):
    def update_data(self, total: int, records: List[RemoteItemRecord]) -> None: ...
    def set_error(self, message: str) -> None: ...


class NestCrowdsourcingManager:
    """Fire-and-forget access to the crowdsourcing service.

    Requests run on the :class:`RequestWorker` when it is running and inline
    otherwise. Failures never propagate to the caller: submissions are logged,
    reads are logged and reported to the listener via ``set_error``, including
    unexpected errors that are not :class:`NestApiError`.
    """

    def __init__(
        self,
        client: NestCrowdsourcingClient,
        worker: Optional[RequestWorker],
        logger: logging.Logger,
        *,
        submit_enabled: Callable[[], bool] = lambda: True,
        submission_log: Optional[logging.Logger] = None,
    ) -> None:
        self._client = client
        self._worker = worker
        self._logger = logger
        self._submit_enabled = submit_enabled
        self._submission_log = submission_log

    @property
    def client(self) -> NestCrowdsourcingClient:
        return self._client

    def replace_client(self, client: NestCrowdsourcingClient) -> NestCrowdsourcingClient:
        """Swap in a new client (e.g. after a URL change) and return the old one."""
        previous, self._client = self._client, client
        return previous

    def set_submission_log(self, submission_log: Optional[logging.Logger]) -> None:
        self._submission_log = submission_log

    # Writes -------------------------------------------------------------

    def submit_observation(self, observation: ItemObservation) -> None:
        if not self._submit_enabled():
            self._logger.info(
                "Nest submissions disabled; not sending item %d (transformed=%s)",
                observation.item_id,
                observation.transformed,
            )
            return
        self._dispatch(lambda: self._run_submit(observation), "nest submission")

    def _run_submit(self, observation: ItemObservation) -> None:
        try:
            self._client.submit(observation)
        except NestApiError as exc:
            self._logger.error("Error submitting nest observation %s: %s", observation.to_payload(), exc)
            return
        self._logger.debug("Submitted nest observation %s", observation.to_payload())
        if self._submission_log is not None:
            self._submission_log.info(
                "itemId=%d transformed=%s",
                observation.item_id,
                str(observation.transformed).lower(),
            )

    # Reads --------------------------------------------------------------

    def load_items(self, listener: ItemListener) -> None:
        self._dispatch(lambda: self._run_read(listener, self._client.list_items), "item listing")

    def load_items_by_id(self, listener: ItemListener, item_id: int) -> None:
        self._dispatch(lambda: self._run_read(listener, lambda: self._client.list_items_by_id(item_id)), "item lookup")

    def load_items_with_filter(self, listener: ItemListener, filter_label: str, page: int, size: int) -> None:
        self._dispatch(
            lambda: self._run_read(
                listener,
                lambda: self._client.list_items_filtered(filter_label, page, size),
            ),
            "filtered listing",
        )

    def load_random_unknown_items(self, listener: ItemListener, count: int) -> None:
        self._dispatch(lambda: self._run_read(listener, lambda: self._client.random_unknown_items(count)), "random items")

    def _run_read(self, listener: ItemListener, fetch: Callable[[], ItemPage]) -> None:
        try:
            page = fetch()
            listener.update_data(page.total, page.records)
        except NestApiError as exc:
            self._logger.error("Error executing request: %s", exc)
            listener.set_error(LOAD_ERROR_MESSAGE)
        except Exception:
            self._logger.exception("Unexpected failure loading nest items")
            listener.set_error(LOAD_ERROR_MESSAGE)

    # Internals ----------------------------------------------------------

    def _dispatch(self, task: Callable[[], None], description: str) -> None:
        worker = self._worker
        if worker is not None and worker.dispatch(task, description=description):
            return
        task()
