"""
Report Service - drives the Selling Partner "bulk report" protocol.

Reports are asynchronous on Amazon's side (usually 30-120s). Strategy:
1. Create the report and remember its reportId
2. Poll its status on a fixed 15s interval, at most 12 times (180s)
3. DONE → resolve the report document to a pre-signed download URL
   CANCELLED / FATAL → fail immediately, no further polling
   still running after the last poll → give up (the job is abandoned, not cancelled)
"""

import asyncio
import logging
from datetime import date
from typing import Any, Awaitable, Callable, Optional
from sellersync.errors import ReportFailed, ReportTimeout, SpApiError
from sellersync.schemas import Credential, ReportDocument, ReportJob, ReportStatus
from sellersync.services.sp_api_client import RateLimitedClient, raise_for_sp_api

logger = logging.getLogger(__name__)

REPORTS_PATH = "/reports/2021-06-30/reports"
DOCUMENTS_PATH = "/reports/2021-06-30/documents"

POLL_INTERVAL_SECONDS = 15.0
MAX_POLL_ATTEMPTS = 12

SALES_AND_TRAFFIC_REPORT = "GET_SALES_AND_TRAFFIC_REPORT"
FBA_INVENTORY_REPORT = "GET_FBA_MYI_UNSUPPRESSED_INVENTORY_DATA"

_FAILED_STATUSES = (ReportStatus.CANCELLED.value, ReportStatus.FATAL.value)


class ReportJobOrchestrator:
    """Create → poll → resolve-document for any SP-API report type."""

    def __init__(
        self,
        client: RateLimitedClient,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        max_polls: int = MAX_POLL_ATTEMPTS,
    ):
        self.client = client
        self._sleep = sleep
        self.poll_interval = poll_interval
        self.max_polls = max_polls

    async def run(
        self,
        credential: Credential,
        report_type: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        report_options: Optional[dict] = None,
    ) -> ReportDocument:
        job = await self.create_report(credential, report_type, start_date, end_date, report_options)
        job = await self.poll_report(credential, job)
        return await self.get_document(credential, job.report_document_id)

    async def create_report(
        self,
        credential: Credential,
        report_type: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        report_options: Optional[dict] = None,
    ) -> ReportJob:
        body: dict[str, Any] = {
            "reportType": report_type,
            "marketplaceIds": [credential.marketplace_id],
        }
        if start_date is not None:
            body["dataStartTime"] = f"{start_date.isoformat()}T00:00:00Z"
        if end_date is not None:
            body["dataEndTime"] = f"{end_date.isoformat()}T23:59:59Z"
        if report_options:
            body["reportOptions"] = report_options

        resp = await self.client.request(REPORTS_PATH, credential, "POST", json=body)
        raise_for_sp_api(resp, REPORTS_PATH)

        report_id = resp.json().get("reportId")
        if not report_id:
            raise SpApiError(resp.status_code, "Report creation response had no reportId", REPORTS_PATH)

        logger.info(f"Report requested: {report_type} reportId={report_id}")
        return ReportJob(
            report_id=str(report_id),
            report_type=report_type,
            marketplace_id=credential.marketplace_id,
        )

    async def poll_report(self, credential: Credential, job: ReportJob) -> ReportJob:
        """
        Wait for the job to finish. Each attempt sleeps one interval and then
        checks status, so a job DONE on the last attempt still succeeds and no
        status request is made after the last attempt.
        """
        path = f"{REPORTS_PATH}/{job.report_id}"

        for attempt in range(1, self.max_polls + 1):
            await self._sleep(self.poll_interval)

            resp = await self.client.request(path, credential)
            raise_for_sp_api(resp, path)
            data = resp.json()
            status = data.get("processingStatus") or ""
            job.polls = attempt
            logger.info(f"Report poll {attempt}/{self.max_polls} ({job.report_id}): {status or 'UNKNOWN'}")

            if status == ReportStatus.DONE.value:
                job.status = ReportStatus.DONE
                job.report_document_id = data.get("reportDocumentId")
                if not job.report_document_id:
                    raise SpApiError(resp.status_code, "DONE report had no reportDocumentId", path)
                return job

            if status in _FAILED_STATUSES:
                job.status = ReportStatus(status)
                logger.warning(f"Report {job.report_id} ended with status: {status}")
                raise ReportFailed(job.report_id, status)

            if status in ReportStatus.__members__:
                job.status = ReportStatus(status)
            else:
                logger.debug(f"Report {job.report_id}: unrecognised status {status!r}, still polling")

        job.status = ReportStatus.TIMED_OUT
        logger.warning(f"Report {job.report_id} polling timed out after {self.max_polls} attempts")
        raise ReportTimeout(job.report_id, self.max_polls, self.poll_interval)

    async def get_document(self, credential: Credential, report_document_id: str) -> ReportDocument:
        path = f"{DOCUMENTS_PATH}/{report_document_id}"
        resp = await self.client.request(path, credential)
        raise_for_sp_api(resp, path)
        data = resp.json()
        url = data.get("url")
        if not url:
            raise SpApiError(resp.status_code, "Report document had no url", path)
        return ReportDocument(
            report_document_id=report_document_id,
            url=url,
            compression_algorithm=data.get("compressionAlgorithm"),
        )
