"""Tests for approval decisions and expense resolution."""

from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from expense_engine.exceptions import AlreadyDecidedError, NotFoundError, ValidationError
from expense_engine.models import ApprovalStep, Base, Company, Expense, User
from expense_engine.services import (
    ApprovalResolver,
    ExpenseService,
    RuleInput,
    RuleService,
    WorkflowStepInput,
)
from expense_engine.workflow import Outcome, OutcomeKind


async def steps_by_number(session, expense_id):
    result = await session.execute(
        select(ApprovalStep)
        .where(ApprovalStep.expense_id == expense_id)
        .order_by(ApprovalStep.step_number)
        .execution_options(populate_existing=True)
    )
    return {s.step_number: s for s in result.scalars().all()}


async def reload(session, expense):
    return await session.get(Expense, expense.expense_id, populate_existing=True)


@pytest.fixture
async def three_step_expense(
    session, expense_service, employee, approver_a, approver_b, approver_c, make_rule, make_draft
):
    """Expense with steps {1: A, 2: B, 3: C} and no manager step."""
    await make_rule([(approver_a, 1), (approver_b, 2), (approver_c, 3)])
    result = await expense_service.submit_expense(employee, make_draft())
    return result.expense


class TestSingleStep:
    async def test_approving_only_step_approves_expense(
        self, session, expense_service, employee, approver_a, make_rule, make_draft
    ):
        await make_rule([(approver_a, 1)])
        expense = (await expense_service.submit_expense(employee, make_draft())).expense
        step = (await steps_by_number(session, expense.expense_id))[1]

        result = await expense_service.decide(
            step.approval_step_id, approver_a, "approved", "Looks fine"
        )

        assert result.expense.status == "approved"
        assert result.outcome.kind == OutcomeKind.APPROVE
        assert result.expense_updated is True
        assert result.step.status == "approved"
        assert result.step.comments == "Looks fine"
        assert result.step.approved_at is not None


class TestMultiStep:
    async def test_approving_highest_first_approves_with_lower_pending(
        self, session, expense_service, approver_c, three_step_expense
    ):
        steps = await steps_by_number(session, three_step_expense.expense_id)

        result = await expense_service.decide(
            steps[3].approval_step_id, approver_c, "approved"
        )

        assert result.expense.status == "approved"
        steps = await steps_by_number(session, three_step_expense.expense_id)
        assert steps[1].status == "pending"
        assert steps[2].status == "pending"

    async def test_approving_in_order_advances_then_approves(
        self, session, expense_service, approver_a, approver_b, approver_c, three_step_expense
    ):
        steps = await steps_by_number(session, three_step_expense.expense_id)

        first = await expense_service.decide(steps[1].approval_step_id, approver_a, "approved")
        assert first.outcome == Outcome(OutcomeKind.ADVANCE, next_step_number=2)
        assert first.expense.status == "in_review"
        assert first.expense.current_approver_step == 2

        second = await expense_service.decide(steps[2].approval_step_id, approver_b, "approved")
        assert second.expense.status == "in_review"
        assert second.expense.current_approver_step == 3

        third = await expense_service.decide(steps[3].approval_step_id, approver_c, "approved")
        assert third.expense.status == "approved"
        assert third.expense.current_approver_step == 3

    async def test_advance_skips_already_decided_steps(
        self, session, expense_service, approver_a, approver_b, three_step_expense
    ):
        steps = await steps_by_number(session, three_step_expense.expense_id)

        await expense_service.decide(steps[2].approval_step_id, approver_b, "approved")
        result = await expense_service.decide(steps[1].approval_step_id, approver_a, "approved")

        assert result.expense.current_approver_step == 3
        assert result.expense.status == "in_review"

    async def test_reject_is_final(
        self, session, expense_service, approver_a, approver_b, approver_c, three_step_expense
    ):
        steps = await steps_by_number(session, three_step_expense.expense_id)

        rejected = await expense_service.decide(
            steps[2].approval_step_id, approver_b, "rejected", "Over budget"
        )
        assert rejected.expense.status == "rejected"

        # Later decisions are recorded on their step but the expense stays rejected
        late_approve = await expense_service.decide(
            steps[3].approval_step_id, approver_c, "approved"
        )
        assert late_approve.step.status == "approved"
        assert late_approve.expense.status == "rejected"
        assert late_approve.expense_updated is False

        late_advance = await expense_service.decide(
            steps[1].approval_step_id, approver_a, "approved"
        )
        assert late_advance.expense.status == "rejected"
        assert late_advance.expense_updated is False

    async def test_approved_expense_cannot_be_rejected_later(
        self, session, expense_service, approver_a, approver_c, three_step_expense
    ):
        steps = await steps_by_number(session, three_step_expense.expense_id)

        await expense_service.decide(steps[3].approval_step_id, approver_c, "approved")
        result = await expense_service.decide(steps[1].approval_step_id, approver_a, "rejected")

        assert result.step.status == "rejected"
        assert result.expense.status == "approved"
        assert result.expense_updated is False


class TestErrors:
    async def test_redeciding_raises_and_leaves_expense_unchanged(
        self, session, expense_service, approver_a, three_step_expense
    ):
        steps = await steps_by_number(session, three_step_expense.expense_id)
        await expense_service.decide(steps[1].approval_step_id, approver_a, "approved")
        before = await reload(session, three_step_expense)
        status, current = before.status, before.current_approver_step

        with pytest.raises(AlreadyDecidedError) as exc_info:
            await expense_service.decide(steps[1].approval_step_id, approver_a, "rejected")

        assert exc_info.value.status == "approved"
        after = await reload(session, three_step_expense)
        assert (after.status, after.current_approver_step) == (status, current)
        steps = await steps_by_number(session, three_step_expense.expense_id)
        assert steps[1].status == "approved"

    async def test_unknown_step(self, expense_service, approver_a, three_step_expense):
        with pytest.raises(NotFoundError):
            await expense_service.decide(uuid4(), approver_a, "approved")

    async def test_step_of_another_approver(
        self, session, expense_service, approver_b, three_step_expense
    ):
        steps = await steps_by_number(session, three_step_expense.expense_id)

        with pytest.raises(NotFoundError):
            await expense_service.decide(steps[1].approval_step_id, approver_b, "approved")

        steps = await steps_by_number(session, three_step_expense.expense_id)
        assert steps[1].status == "pending"

    async def test_invalid_decision(
        self, session, expense_service, approver_a, three_step_expense
    ):
        steps = await steps_by_number(session, three_step_expense.expense_id)

        with pytest.raises(ValidationError):
            await expense_service.decide(steps[1].approval_step_id, approver_a, "pending")


@pytest.fixture
async def shared_db(tmp_path):
    """File-backed database so separate sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'approvals.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


class TestConcurrentDecisions:
    async def test_stale_session_loses_the_step(self, shared_db, converter, make_draft):
        """Steps {1: A, 2: B}. Two sessions both see step 1 pending; only one decides it."""
        async with shared_db() as setup:
            company = Company(name="Acme Corp", currency="USD", country="United States")
            setup.add(company)
            await setup.flush()
            people = {
                name: User(
                    company_id=company.company_id,
                    email=f"{name}@acme.test",
                    first_name=name.title(),
                    last_name="Tester",
                    role=role,
                )
                for name, role in [("ann", "manager"), ("ben", "manager"), ("emma", "employee")]
            }
            setup.add_all(people.values())
            await setup.flush()
            await RuleService(setup).create_rule(
                company.company_id,
                RuleInput(
                    name="Two step",
                    is_manager_approver=False,
                    steps=[
                        WorkflowStepInput(people["ann"].user_id, 1),
                        WorkflowStepInput(people["ben"].user_id, 2),
                    ],
                ),
            )
            submitted = await ExpenseService(setup, converter=converter).submit_expense(
                people["emma"], make_draft()
            )
            expense_id = submitted.expense.expense_id
            step_id = next(
                s.approval_step_id for s in submitted.workflow.steps if s.step_number == 1
            )
            approver = people["ann"]
            await setup.commit()

        async with shared_db() as winner, shared_db() as loser:
            stale_step = await loser.get(ApprovalStep, step_id)
            assert stale_step.status == "pending"

            won = await ExpenseService(winner, converter=converter).decide(
                step_id, approver, "approved"
            )
            await winner.commit()
            assert won.outcome.kind == OutcomeKind.ADVANCE

            with pytest.raises(AlreadyDecidedError) as exc_info:
                await ExpenseService(loser, converter=converter).decide(
                    step_id, approver, "rejected", "too late"
                )
            assert exc_info.value.status == "approved"
            await loser.rollback()

        async with shared_db() as check:
            expense = await check.get(Expense, expense_id)
            assert expense.status == "in_review"
            assert expense.current_approver_step == 2
            step = await check.get(ApprovalStep, step_id)
            assert step.status == "approved"
            assert step.comments is None


class TestIdempotentTerminalWrites:
    async def test_two_decisions_concluding_approval_both_succeed(
        self, session, expense_service, approver_a, approver_b, make_rule, employee, make_draft
    ):
        """Steps {1, 2}: 2 approves (nothing higher), then 1 finds nothing higher pending."""
        await make_rule([(approver_a, 1), (approver_b, 2)])
        expense = (await expense_service.submit_expense(employee, make_draft())).expense
        steps = await steps_by_number(session, expense.expense_id)

        second = await expense_service.decide(steps[2].approval_step_id, approver_b, "approved")
        first = await expense_service.decide(steps[1].approval_step_id, approver_a, "approved")

        assert second.outcome.kind == OutcomeKind.APPROVE
        assert first.outcome.kind == OutcomeKind.APPROVE
        assert second.expense_updated is True
        assert first.expense_updated is False
        assert first.expense.status == "approved"

    async def test_duplicate_terminal_write_is_noop(self, session, three_step_expense):
        resolver = ApprovalResolver(session)
        outcome = Outcome(OutcomeKind.APPROVE)

        assert await resolver.apply_outcome(three_step_expense.expense_id, outcome) is True
        assert await resolver.apply_outcome(three_step_expense.expense_id, outcome) is False
        rejected = Outcome(OutcomeKind.REJECT)
        assert await resolver.apply_outcome(three_step_expense.expense_id, rejected) is False

        expense = await reload(session, three_step_expense)
        assert expense.status == "approved"

    async def test_advance_never_touches_terminal_expense(self, session, three_step_expense):
        resolver = ApprovalResolver(session)
        await resolver.apply_outcome(three_step_expense.expense_id, Outcome(OutcomeKind.REJECT))

        updated = await resolver.apply_outcome(
            three_step_expense.expense_id, Outcome(OutcomeKind.ADVANCE, next_step_number=2)
        )

        assert updated is False
        expense = await reload(session, three_step_expense)
        assert expense.current_approver_step == 0
        assert expense.status == "rejected"


class TestRuleTypes:
    @pytest.mark.parametrize(
        "rule_type, extra",
        [
            ("percentage", {"percentage_required": 100}),
            ("specific_approver", {}),
            ("hybrid", {"percentage_required": 100}),
        ],
    )
    async def test_declared_thresholds_are_not_enforced(
        self,
        session,
        expense_service,
        employee,
        approver_a,
        approver_b,
        make_rule,
        make_draft,
        rule_type,
        extra,
    ):
        if rule_type != "percentage":
            extra = {**extra, "specific_approver_id": approver_a.user_id}
        await make_rule([(approver_a, 1), (approver_b, 2)], rule_type=rule_type, **extra)
        expense = (await expense_service.submit_expense(employee, make_draft())).expense
        steps = await steps_by_number(session, expense.expense_id)

        result = await expense_service.decide(steps[2].approval_step_id, approver_b, "approved")

        # One of two approvers, without the specific approver: still approved
        assert result.expense.status == "approved"


class TestScenarios:
    async def test_no_rule_manager_approves(
        self, session, expense_service, employee, manager, make_draft
    ):
        expense = (await expense_service.submit_expense(employee, make_draft())).expense
        steps = await steps_by_number(session, expense.expense_id)
        assert list(steps) == [1]
        assert expense.status == "in_review"

        pending = await expense_service.list_pending_steps_for(manager.user_id)
        assert [s.approval_step_id for s in pending] == [steps[1].approval_step_id]

        result = await expense_service.decide(steps[1].approval_step_id, manager, "approved")

        assert result.expense.status == "approved"
        assert await expense_service.list_pending_steps_for(manager.user_id) == []

    async def test_manager_first_rule_last_approver_clears(
        self,
        session,
        expense_service,
        employee,
        manager,
        approver_a,
        approver_b,
        make_rule,
        make_draft,
    ):
        await make_rule([(approver_a, 1), (approver_b, 2)], is_manager_approver=True)
        expense = (await expense_service.submit_expense(employee, make_draft())).expense
        steps = await steps_by_number(session, expense.expense_id)
        assert [(n, s.approver_id) for n, s in steps.items()] == [
            (0, manager.user_id),
            (1, approver_a.user_id),
            (2, approver_b.user_id),
        ]

        result = await expense_service.decide(steps[2].approval_step_id, approver_b, "approved")

        assert result.expense.status == "approved"
        steps = await steps_by_number(session, expense.expense_id)
        assert steps[0].status == "pending"
        assert steps[1].status == "pending"
