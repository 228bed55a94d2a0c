from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.announcements import service as announcement_service
from app.api.v1.announcements.schemas import ExpressInterest, TutorProfileSnapshot
from app.api.v1.class_leads import service as lead_service
from app.api.v1.class_leads.schemas import ClassLeadCreate, ClassLeadUpdate, DemoAssign
from app.core.enums import ClassLeadStatus, DemoStatus
from app.core.exceptions import (
    DemoAlreadyActive,
    InvalidTransition,
    PermissionDenied,
    ServiceError,
    TutorNotInterested,
    ValidationError,
)
from app.core.models import FinalClass, WorkflowAuditLog
from app.core.notifications import DEMO_ASSIGNED, LEAD_ANNOUNCED, TUTOR_INTERESTED

from conftest import group_lead_payload, single_lead_payload


async def _audit_actions(db: AsyncSession, entity_id) -> list:
    result = await db.execute(
        select(WorkflowAuditLog.action)
        .where(WorkflowAuditLog.entity_id == entity_id)
        .order_by(WorkflowAuditLog.timestamp)
    )
    return list(result.scalars().all())


async def _posted_lead(db, manager, notifier, **overrides):
    lead = await lead_service.create_lead(db, manager, ClassLeadCreate(**single_lead_payload(**overrides)))
    return await lead_service.post_lead(db, lead.id, manager, notifier)


@pytest.mark.asyncio
async def test_create_single_lead(db_session: AsyncSession, manager) -> None:
    lead = await lead_service.create_lead(db_session, manager, ClassLeadCreate(**single_lead_payload()))

    assert lead.status == ClassLeadStatus.NEW
    assert lead.lead_code.startswith("CL-")
    assert lead.number_of_students == 1
    assert lead.total_fees == Decimal("6000")
    assert lead.created_by == manager.id
    assert await _audit_actions(db_session, lead.id) == ["CREATED"]


@pytest.mark.asyncio
async def test_create_group_lead_derives_name_and_totals(db_session: AsyncSession, manager) -> None:
    lead = await lead_service.create_lead(db_session, manager, ClassLeadCreate(**group_lead_payload()))

    assert lead.student_name == "Isha, Kabir"
    assert lead.number_of_students == 2
    assert lead.total_fees == Decimal("6500")
    assert lead.total_tutor_fees == Decimal("4200")


@pytest.mark.asyncio
async def test_post_lead_opens_announcement(db_session: AsyncSession, manager, notifier) -> None:
    posted = await _posted_lead(db_session, manager, notifier)

    assert posted.lead.status == ClassLeadStatus.ANNOUNCED
    assert posted.announcement.is_active is True
    assert posted.announcement.class_lead_id == posted.lead.id
    assert LEAD_ANNOUNCED in notifier.events()


@pytest.mark.asyncio
async def test_post_twice_is_an_invalid_transition(db_session: AsyncSession, manager, notifier) -> None:
    posted = await _posted_lead(db_session, manager, notifier)

    with pytest.raises(InvalidTransition) as exc_info:
        await lead_service.post_lead(db_session, posted.lead.id, manager, notifier)
    assert exc_info.value.from_status == "ANNOUNCED"


@pytest.mark.asyncio
async def test_other_manager_cannot_post(db_session: AsyncSession, manager, other_manager) -> None:
    lead = await lead_service.create_lead(db_session, manager, ClassLeadCreate(**single_lead_payload()))

    with pytest.raises(PermissionDenied):
        await lead_service.post_lead(db_session, lead.id, other_manager)


@pytest.mark.asyncio
async def test_express_interest_is_idempotent(db_session: AsyncSession, manager, tutor, notifier) -> None:
    posted = await _posted_lead(db_session, manager, notifier)
    payload = ExpressInterest(profile=TutorProfileSnapshot(subjects=["Math"], approval_ratio=1.0))

    first = await announcement_service.express_interest(db_session, posted.announcement.id, tutor, payload, notifier)
    second = await announcement_service.express_interest(db_session, posted.announcement.id, tutor, payload, notifier)

    assert first.id == second.id
    # Half the subjects plus a perfect approval ratio
    assert first.match_score == 45
    ranked = await announcement_service.list_interested_tutors(db_session, posted.announcement.id)
    assert [i.tutor_id for i in ranked] == [tutor.id]
    assert notifier.events().count(TUTOR_INTERESTED) == 1


@pytest.mark.asyncio
async def test_interested_tutors_ranked_by_score(db_session: AsyncSession, manager, tutor, other_tutor) -> None:
    posted = await _posted_lead(db_session, manager, None)
    weak = ExpressInterest(profile=TutorProfileSnapshot(subjects=["History"]))
    strong = ExpressInterest(profile=TutorProfileSnapshot(subjects=["Math", "Science"], ratings=5))

    await announcement_service.express_interest(db_session, posted.announcement.id, tutor, weak)
    await announcement_service.express_interest(db_session, posted.announcement.id, other_tutor, strong)

    ranked = await announcement_service.list_interested_tutors(db_session, posted.announcement.id)
    assert [i.tutor_id for i in ranked] == [other_tutor.id, tutor.id]


@pytest.mark.asyncio
async def test_select_uninterested_tutor_is_refused(db_session: AsyncSession, manager, tutor) -> None:
    posted = await _posted_lead(db_session, manager, None)
    assign = DemoAssign(tutor_id=tutor.id, demo_date=date.today(), demo_time="17:00")

    with pytest.raises(TutorNotInterested):
        await lead_service.select_tutor_for_demo(db_session, posted.lead.id, manager, assign)
    lead = await lead_service.get_lead(db_session, posted.lead.id)
    assert lead.status == ClassLeadStatus.ANNOUNCED


@pytest.mark.asyncio
async def test_direct_assignment_skips_interest(db_session: AsyncSession, manager, tutor, notifier) -> None:
    posted = await _posted_lead(db_session, manager, notifier)
    assign = DemoAssign(tutor_id=tutor.id, demo_date=date.today(), demo_time="17:00", direct_assignment=True)

    result = await lead_service.select_tutor_for_demo(db_session, posted.lead.id, manager, assign, notifier)

    assert result.lead.status == ClassLeadStatus.DEMO_SCHEDULED
    assert result.demo.status == DemoStatus.SCHEDULED
    assert result.demo.tutor_id == tutor.id
    assert notifier.sent[-1].event == DEMO_ASSIGNED
    assert notifier.sent[-1].recipients == [tutor.id]


@pytest.mark.asyncio
async def test_selecting_tutor_closes_announcement(db_session: AsyncSession, scheduled_demo, other_tutor) -> None:
    scheduled = await scheduled_demo()
    announcement = await announcement_service.get_announcement_for_lead(db_session, scheduled.lead.id)

    assert announcement.is_active is False
    with pytest.raises(ServiceError) as exc_info:
        await announcement_service.express_interest(db_session, announcement.id, other_tutor, ExpressInterest())
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_second_demo_while_one_is_active(db_session: AsyncSession, scheduled_demo, manager, other_tutor) -> None:
    scheduled = await scheduled_demo()
    assign = DemoAssign(tutor_id=other_tutor.id, demo_date=date.today(), demo_time="18:00", direct_assignment=True)

    with pytest.raises(DemoAlreadyActive) as exc_info:
        await lead_service.select_tutor_for_demo(db_session, scheduled.lead.id, manager, assign)
    assert exc_info.value.details["demo_id"] == scheduled.demo.id


@pytest.mark.asyncio
async def test_update_lead_while_new(db_session: AsyncSession, manager) -> None:
    lead = await lead_service.create_lead(db_session, manager, ClassLeadCreate(**single_lead_payload()))

    updated = await lead_service.update_lead(
        db_session, lead.id, manager, ClassLeadUpdate(grade="9", payment_amount=Decimal("7000"))
    )

    assert updated.grade == "9"
    assert updated.total_fees == Decimal("7000")
    assert updated.version > lead.version


@pytest.mark.asyncio
async def test_update_lead_revalidates_merged_fields(db_session: AsyncSession, manager) -> None:
    lead = await lead_service.create_lead(db_session, manager, ClassLeadCreate(**single_lead_payload()))

    with pytest.raises(ValidationError) as exc_info:
        await lead_service.update_lead(db_session, lead.id, manager, ClassLeadUpdate(mode="OFFLINE"))
    assert exc_info.value.field == "city"


@pytest.mark.asyncio
async def test_update_lead_locked_after_demo_scheduled(db_session: AsyncSession, scheduled_demo, manager) -> None:
    scheduled = await scheduled_demo()

    with pytest.raises(ServiceError) as exc_info:
        await lead_service.update_lead(db_session, scheduled.lead.id, manager, ClassLeadUpdate(grade="9"))
    assert exc_info.value.status_code == 400


@pytest.mark.asyncio
async def test_reassigned_manager_takes_over(db_session: AsyncSession, manager, other_manager, notifier) -> None:
    lead = await lead_service.create_lead(db_session, manager, ClassLeadCreate(**single_lead_payload()))

    reassigned = await lead_service.reassign_manager(db_session, lead.id, manager, other_manager.id)
    assert reassigned.reassigned_to == other_manager.id
    assert reassigned.status == ClassLeadStatus.NEW

    posted = await lead_service.post_lead(db_session, lead.id, other_manager, notifier)
    assert posted.lead.status == ClassLeadStatus.ANNOUNCED
    listed = await lead_service.list_leads(db_session, other_manager)
    assert [l.id for l in listed] == [lead.id]


@pytest.mark.asyncio
async def test_list_leads_is_scoped_to_manager(db_session: AsyncSession, manager, other_manager, admin) -> None:
    await lead_service.create_lead(db_session, manager, ClassLeadCreate(**single_lead_payload()))
    await lead_service.create_lead(db_session, other_manager, ClassLeadCreate(**group_lead_payload()))

    assert len(await lead_service.list_leads(db_session, manager)) == 1
    assert len(await lead_service.list_leads(db_session, admin)) == 2
    announced = await lead_service.list_leads(db_session, admin, status_filter=ClassLeadStatus.ANNOUNCED)
    assert announced == []


@pytest.mark.asyncio
async def test_payment_received_after_conversion(db_session: AsyncSession, converted_class, manager) -> None:
    converted = await converted_class()

    paid = await lead_service.mark_payment_received(db_session, converted.lead.id, manager)
    again = await lead_service.mark_payment_received(db_session, converted.lead.id, manager)

    assert paid.status == ClassLeadStatus.PAYMENT_RECEIVED
    assert paid.payment_received is True
    assert again.version == paid.version


@pytest.mark.asyncio
async def test_payment_before_conversion_is_refused(db_session: AsyncSession, scheduled_demo, manager) -> None:
    scheduled = await scheduled_demo()

    with pytest.raises(InvalidTransition):
        await lead_service.mark_payment_received(db_session, scheduled.lead.id, manager)


@pytest.mark.asyncio
async def test_deleting_lead_keeps_final_class(db_session: AsyncSession, converted_class, manager) -> None:
    converted = await converted_class()

    await lead_service.delete_lead(db_session, converted.lead.id, manager)

    result = await db_session.execute(
        select(FinalClass)
        .where(FinalClass.id == converted.final_class.id)
        .execution_options(populate_existing=True)
    )
    fc = result.scalar_one()
    assert fc.class_lead_id is None
    assert "DELETED" in await _audit_actions(db_session, converted.lead.id)
