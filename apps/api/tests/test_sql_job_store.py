import asyncio
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from tradequote.db import Base
from tradequote.models import ClientRecord, JobRecord
from tradequote.services.pipeline import JobStatus, JobStoreError, SqlJobStore


def _seeded_engine(tmp_path: Path) -> Engine:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'store.db'}")
    Base.metadata.create_all(bind=engine)

    with Session(engine) as session:
        session.add(ClientRecord(id="c-1", name="Acme Plumbing"))
        session.add_all(
            [
                JobRecord(
                    id="job-1",
                    title="Boiler swap",
                    status="quoted",
                    total_amount=Decimal("1500"),
                    client_id="c-1",
                    created_at=datetime(2026, 10, 1, 9, 0),
                ),
                JobRecord(
                    id="job-2",
                    title="Roof repair",
                    status="scheduled",
                    scheduled_date=date(2026, 10, 20),
                    created_at=datetime(2026, 10, 3, 9, 0),
                ),
                JobRecord(
                    id="job-3",
                    title="Old lead",
                    status="cancelled",
                    created_at=datetime(2026, 10, 2, 9, 0),
                ),
            ]
        )
        session.commit()

    return engine


def test_list_jobs_returns_newest_first_with_client_name(tmp_path: Path) -> None:
    store = SqlJobStore(_seeded_engine(tmp_path))

    jobs = asyncio.run(store.list_jobs())

    assert [job.id for job in jobs] == ["job-2", "job-3", "job-1"]
    boiler = jobs[2]
    assert boiler.status == JobStatus.QUOTED
    assert boiler.total_amount == Decimal("1500")
    assert boiler.client_id == "c-1"
    assert boiler.client_name == "Acme Plumbing"
    assert jobs[0].scheduled_date == date(2026, 10, 20)
    assert jobs[0].client_name is None


def test_update_job_status_persists_single_field(tmp_path: Path) -> None:
    engine = _seeded_engine(tmp_path)
    store = SqlJobStore(engine)

    asyncio.run(store.update_job_status("job-1", JobStatus.APPROVED))

    with Session(engine) as session:
        record = session.scalar(select(JobRecord).where(JobRecord.id == "job-1"))

    assert record is not None
    assert record.status == "approved"
    assert record.title == "Boiler swap"


def test_update_job_status_rejects_missing_job(tmp_path: Path) -> None:
    store = SqlJobStore(_seeded_engine(tmp_path))

    with pytest.raises(JobStoreError, match="job not found"):
        asyncio.run(store.update_job_status("missing", JobStatus.APPROVED))


def test_list_jobs_rejects_unknown_status_rows(tmp_path: Path) -> None:
    engine = _seeded_engine(tmp_path)
    with Session(engine) as session:
        session.add(JobRecord(id="job-9", title="Legacy", status="archived"))
        session.commit()

    with pytest.raises(JobStoreError, match="unknown status"):
        asyncio.run(SqlJobStore(engine).list_jobs())


def test_store_errors_are_wrapped(tmp_path: Path) -> None:
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'empty.db'}")

    with pytest.raises(JobStoreError, match="failed to list jobs"):
        asyncio.run(SqlJobStore(engine).list_jobs())
