from __future__ import annotations

from dataclasses import dataclass

from .core.constants import DEFAULT_EVENT_POLL_SECONDS, DEFAULT_RECONCILE_MAX_ATTEMPTS
from .database.connection import DBConfig, DatabaseConnection
from .groups.mysql_group_repository import MySQLGroupRepository
from .groups.mysql_member_repository import MySQLMemberRepository
from .groups.service import GroupService
from .identity.provider import HeaderIdentityProvider
from .notifications.mysql_event_channel import MySQLEventChannel
from .notifications.notifier import ChangeNotifier
from .reconciliation.service import ReconciliationService
from .records.mysql_record_repository import MySQLRecordRepository
from .records.service import RecordLedger
from .sessions.mysql_session_repository import MySQLSessionRepository
from .sessions.service import SessionManager
from .stats.service import StatsAggregator


@dataclass(frozen=True)
class Container:
    conn: DatabaseConnection

    groups_repo: MySQLGroupRepository
    members_repo: MySQLMemberRepository
    sessions_repo: MySQLSessionRepository
    records_repo: MySQLRecordRepository
    event_channel: MySQLEventChannel

    identity: HeaderIdentityProvider
    group_service: GroupService
    record_ledger: RecordLedger
    reconciliation: ReconciliationService
    stats: StatsAggregator
    session_manager: SessionManager
    notifier: ChangeNotifier


def build_container(
    *,
    db_config: dict,
    reconcile_max_attempts: int = DEFAULT_RECONCILE_MAX_ATTEMPTS,
    event_poll_seconds: float = DEFAULT_EVENT_POLL_SECONDS,
    identity_header: str = "X-Profile-Id",
) -> Container:
    conn = DatabaseConnection.get_instance(DBConfig.from_dict(db_config))

    groups_repo = MySQLGroupRepository(conn)
    members_repo = MySQLMemberRepository(conn)
    sessions_repo = MySQLSessionRepository(conn)
    records_repo = MySQLRecordRepository(conn)
    event_channel = MySQLEventChannel(conn)

    group_service = GroupService(groups_repo, members_repo)
    record_ledger = RecordLedger(records_repo, sessions_repo, group_service)
    reconciliation = ReconciliationService(
        records_repo,
        sessions_repo,
        group_service,
        max_attempts=reconcile_max_attempts,
    )
    stats = StatsAggregator(records_repo, sessions_repo, group_service)
    session_manager = SessionManager(sessions_repo, group_service, reconciliation, stats)
    notifier = ChangeNotifier(event_channel, poll_interval=event_poll_seconds)

    return Container(
        conn=conn,
        groups_repo=groups_repo,
        members_repo=members_repo,
        sessions_repo=sessions_repo,
        records_repo=records_repo,
        event_channel=event_channel,
        identity=HeaderIdentityProvider(id_header=identity_header),
        group_service=group_service,
        record_ledger=record_ledger,
        reconciliation=reconciliation,
        stats=stats,
        session_manager=session_manager,
        notifier=notifier,
    )
