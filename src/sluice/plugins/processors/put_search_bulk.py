# src/sluice/plugins/processors/put_search_bulk.py
"""Bulk writer for Elasticsearch-compatible search backends.

Each cycle takes up to batch_size records, builds one `_bulk` request and
routes every record by its per-item outcome:

    success  - the backend accepted the action
    failure  - rejected locally or by the backend; retrying will not help
    retry    - the backend failed (5xx); the same records may succeed later
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
import structlog
from pydantic import Field, SecretStr, field_validator, model_validator

from sluice.contracts import (
    Determinism,
    IndexOperation,
    OperationSpec,
    Record,
    ReconciliationResult,
    Route,
    UpsertMode,
)
from sluice.core.templates import AttributeTemplate, TemplateError, compile_optional, is_template
from sluice.plugins.base import BaseProcessor
from sluice.plugins.bulk import BulkRequestBuilder, BulkResponseReconciler
from sluice.plugins.clients import SearchHTTPClient
from sluice.plugins.config_base import BatchConfig, PluginConfigError
from sluice.plugins.context import PluginContext
from sluice.plugins.protocols import ProcessSession

logger = structlog.get_logger(__name__)

BULK_PATH = "_bulk"

# Literal operations that address an existing document
_ID_REQUIRED_LITERALS = frozenset({"", IndexOperation.UPDATE.value, IndexOperation.UPSERT.value, IndexOperation.DELETE.value})


class PutSearchBulkConfig(BatchConfig):
    """Configuration for the bulk writer.

    index, doc_type, operation, id_attribute, script and charset are
    templates rendered against each record's attributes.
    """

    url: str = Field(description="Base URL of the search backend (scheme, host, port)")
    index: str = Field(description="Target index (template)")
    doc_type: str | None = Field(default=None, description="Document type label, omitted when unset (template)")
    operation: str = Field(default="index", description="index, update, upsert or delete (template)")
    id_attribute: str | None = Field(default=None, description="Name of the attribute holding the document id")
    script: str | None = Field(default=None, description="Script body for scripted upserts (template)")
    upsert_mode: UpsertMode | None = Field(default=None, description="Body layout for update/upsert operations")
    charset: str = Field(default="utf-8", description="Encoding of record payloads (template)")

    username: str | None = None
    password: SecretStr | None = None
    connect_timeout: float = Field(default=5.0, gt=0)
    response_timeout: float = Field(default=15.0, gt=0)
    verify_tls: bool | str = Field(default=True, description="Verify certificates, or path to a CA bundle")
    query_params: dict[str, str] = Field(default_factory=dict, description="Extra query parameters for the _bulk URL")

    @field_validator("url")
    @classmethod
    def _validate_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"url must start with http:// or https://, got {v!r}")
        return v

    @field_validator("index")
    @classmethod
    def _validate_index(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("index must not be blank")
        return v

    @field_validator("id_attribute", "doc_type", "script")
    @classmethod
    def _blank_to_none(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def _validate_operation_settings(self) -> "PutSearchBulkConfig":
        # Only literal operations can be checked up front; templated ones
        # are checked per record.
        if self.id_attribute is None and not is_template(self.operation) and self.operation.strip().lower() in _ID_REQUIRED_LITERALS:
            raise ValueError("id_attribute is required unless operation is 'index'")
        if self.upsert_mode is UpsertMode.SCRIPTED_UPSERT and self.script is None:
            raise ValueError("upsert_mode 'scripted_upsert' requires a script")
        if self.password is not None and self.username is None:
            raise ValueError("password is set but username is not")
        return self


class PutSearchBulkHTTP(BaseProcessor):
    """Write records to a search index with one bulk request per cycle.

    Config options:
        url: Backend base URL (required)
        index: Target index, template (required)
        operation: index | update | upsert | delete, template (default: index)
        id_attribute: Attribute holding the document id (required unless index)
        doc_type: Document type label, template (optional)
        upsert_mode: doc_as_upsert | scripted_upsert (optional)
        script: Script body for scripted_upsert, template
        charset: Payload encoding, template (default: utf-8)
        batch_size: Records per request (default: 100)
        username / password: Basic auth (optional)
        connect_timeout / response_timeout: Seconds (default: 5 / 15)
        verify_tls: true, false, or a CA bundle path (default: true)
        query_params: Extra query parameters for the _bulk URL
    """

    name = "put_search_bulk_http"
    plugin_version = "1.0.0"
    determinism = Determinism.IO_WRITE
    relationships = frozenset({Route.SUCCESS.value, Route.FAILURE.value, Route.RETRY.value})

    def __init__(self, config: dict[str, Any]) -> None:
        super().__init__(config)
        cfg = PutSearchBulkConfig.from_dict(config)
        self._cfg = cfg
        self._batch_size = cfg.batch_size

        try:
            self._index = AttributeTemplate(cfg.index)
            self._doc_type = compile_optional(cfg.doc_type)
            self._operation = AttributeTemplate(cfg.operation)
            self._script = compile_optional(cfg.script)
            self._charset = AttributeTemplate(cfg.charset)
        except TemplateError as e:
            raise PluginConfigError(f"Invalid configuration for {type(self).__name__}: {e}") from e

        self._client: SearchHTTPClient | None = None

    @property
    def bulk_url(self) -> str:
        """Destination reported with every successful delivery."""
        return str(self._get_client().endpoint(BULK_PATH, self._cfg.query_params or None))

    def on_scheduled(self, ctx: PluginContext) -> None:
        self._get_client()
        logger.info(
            "bulk_writer_scheduled",
            run_id=ctx.run_id,
            node_id=self.node_id,
            url=self._cfg.url,
            batch_size=self._batch_size,
        )

    def _get_client(self) -> SearchHTTPClient:
        if self._client is None:
            password = self._cfg.password.get_secret_value() if self._cfg.password is not None else None
            self._client = SearchHTTPClient(
                self._cfg.url,
                username=self._cfg.username,
                password=password,
                connect_timeout=self._cfg.connect_timeout,
                response_timeout=self._cfg.response_timeout,
                verify=self._cfg.verify_tls,
            )
        return self._client

    def resolve_operation(self, record: Record) -> OperationSpec:
        """Render this record's operation settings.

        Raises:
            TemplateError: A template failed to render
        """
        attributes = record.attributes
        identifier = record.get(self._cfg.id_attribute) if self._cfg.id_attribute else None
        return OperationSpec(
            index=self._index.render(attributes).strip() or None,
            operation=self._operation.render(attributes).strip() or None,
            doc_type=_render_optional(self._doc_type, attributes),
            identifier=identifier or None,
            script=_render_optional(self._script, attributes),
            upsert_mode=self._cfg.upsert_mode,
            charset=self._charset.render(attributes).strip() or "utf-8",
        )

    def on_trigger(self, ctx: PluginContext, session: ProcessSession) -> None:
        records = session.get(self._batch_size)
        if not records:
            return

        entries: list[tuple[Record, OperationSpec]] = []
        for record in records:
            try:
                entries.append((record, self.resolve_operation(record)))
            except TemplateError as e:
                logger.error("bulk_template_failed", record_id=record.record_id, error=str(e))
                session.transfer(record, Route.FAILURE.value)

        request = BulkRequestBuilder(reader=session.read).build(entries)
        for exclusion in request.excluded:
            session.transfer(exclusion.record, Route.FAILURE.value)

        if request.is_empty:
            return

        client = self._get_client()
        reconciler = BulkResponseReconciler(transit_uri=self.bulk_url)
        try:
            response = client.put(BULK_PATH, request.payload, params=self._cfg.query_params or None)
        except httpx.HTTPError as e:
            logger.error(
                "bulk_request_failed",
                node_id=self.node_id,
                record_count=len(request.pending),
                error=str(e),
                error_type=type(e).__name__,
            )
            result = reconciler.transport_failure(request.pending, e)
        else:
            result = reconciler.reconcile(request.pending, response.status_code, response.content)

        self._apply(result, ctx, session)

    def _apply(self, result: ReconciliationResult, ctx: PluginContext, session: ProcessSession) -> None:
        for outcome in result.outcomes:
            record = outcome.record
            if outcome.penalize:
                record = session.penalize(record)
            session.transfer(record, outcome.route.value)
            if outcome.transit_uri is not None:
                session.record_send(record, outcome.transit_uri)

        if result.yield_requested:
            ctx.request_yield()

        logger.info(
            "bulk_batch_completed",
            node_id=self.node_id,
            status_code=result.status_code,
            succeeded=len(result.by_route(Route.SUCCESS)),
            failed=len(result.by_route(Route.FAILURE)),
            retried=len(result.by_route(Route.RETRY)),
        )

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None


def _render_optional(template: AttributeTemplate | None, attributes: Mapping[str, str]) -> str | None:
    if template is None:
        return None
    return template.render(attributes).strip() or None
