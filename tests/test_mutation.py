"""Tests for mutations and the queries they update."""

import pytest

from tagquery import Mutation, MutationContext


class TestExecution:
    """Tests for running a mutation."""

    async def test_runs_once(self, client, clock, counter) -> None:
        mutation = client.mutate(counter, [1, 2])

        result = await mutation
        await clock.advance(100)

        assert result is mutation
        assert counter.calls == [(1, 2)]
        assert mutation.data == 1
        assert mutation.executed is True
        assert mutation.executing is False
        assert mutation.errored is False

    async def test_not_deduplicated(self, client, counter) -> None:
        await client.mutate(counter, ["same"])
        await client.mutate(counter, ["same"])

        assert counter.count == 2

    async def test_starts_without_being_awaited(self, client, clock, counter) -> None:
        mutation = client.mutate(counter, [])
        assert mutation.executing is True

        await clock.flush()

        assert counter.count == 1
        assert mutation.executed is True

    async def test_placeholder(self, client, clock) -> None:
        async def save() -> str:
            await clock.sleep(10)
            return "saved"

        mutation = client.mutate(save, [], placeholder="saving")
        await clock.flush()
        assert mutation.data == "saving"

        await clock.advance(10)
        await mutation
        assert mutation.data == "saved"

    async def test_await_raises_original_error(self, client, make_counter) -> None:
        error = ValueError("rejected")
        action = make_counter(fail_times=1, error=error)

        mutation = client.mutate(action, [])
        with pytest.raises(ValueError) as excinfo:
            await mutation

        assert excinfo.value is error
        assert mutation.errored is True
        assert mutation.error is error
        assert mutation.data is None

    async def test_retries(self, client, clock, make_counter) -> None:
        action = make_counter(fail_times=2)

        mutation = client.mutate(action, [], retries={"count": 2, "delay": 10})
        await clock.advance(20)

        assert (await mutation).data == 3
        assert action.count == 3

    async def test_handle_type(self, client, counter) -> None:
        assert isinstance(client.mutate(counter, []), Mutation)


class TestCallbacks:
    """Tests for mutation lifecycle callbacks."""

    async def test_context_on_success(self, client, counter) -> None:
        contexts: list[tuple[str, MutationContext]] = []

        await client.mutate(
            counter,
            ["payload"],
            on_execute=lambda ctx: contexts.append(("execute", ctx)),
            on_success=lambda ctx: contexts.append(("success", ctx)),
            on_error=lambda ctx: contexts.append(("error", ctx)),
        )

        assert [name for name, _ in contexts] == ["execute", "success"]
        assert contexts[0][1].payload == ("payload",)
        assert contexts[0][1].data is None
        assert contexts[1][1].data == 1

    async def test_context_on_error(self, client, make_counter) -> None:
        contexts: list[MutationContext] = []
        action = make_counter(fail_times=1)

        with pytest.raises(RuntimeError):
            await client.mutate(action, ["x"], on_error=contexts.append)

        assert len(contexts) == 1
        assert contexts[0].payload == ("x",)
        assert isinstance(contexts[0].error, RuntimeError)

    async def test_failing_callback_is_logged(self, client, counter, caplog) -> None:
        def explode(ctx: MutationContext) -> None:
            raise RuntimeError("callback")

        mutation = await client.mutate(counter, [], on_success=explode)

        assert mutation.data == 1
        assert "Mutation callback" in caplog.text


class TestQueryUpdates:
    """Tests for updating tagged queries around a mutation."""

    async def test_before_hook_runs_before_action(self, client, clock, tags) -> None:
        seen: list = []
        query = client.query(lambda: ["ada"], [], tags=[tags["users"]])
        await clock.advance(0)

        def add_user(name: str) -> str:
            seen.append(list(query.data))
            return name

        await client.mutate(
            add_user,
            ["grace"],
            tags=[tags["users"]],
            set_query_data_before=lambda users, ctx: [*users, ctx.payload[0]],
            refresh_query_data=False,
        )

        assert seen == [["ada", "grace"]]
        assert query.data == ["ada", "grace"]

    async def test_after_hook_and_refresh(self, client, clock, tags, counter) -> None:
        query = client.query(counter, [], tags=[tags["users"]])
        await clock.advance(0)
        written: list = []

        def after(data, ctx: MutationContext):
            written.append((data, ctx.data))
            return 100

        await client.mutate(
            lambda: "done", [], tags=[tags["users"]], set_query_data_after=after
        )
        await clock.flush()

        assert written == [(1, "done")]
        assert counter.count == 2
        assert query.data == 2

    async def test_failing_after_hook_is_logged(
        self, client, clock, tags, counter, caplog
    ) -> None:
        query = client.query(counter, [], tags=[tags["users"]])
        await clock.advance(0)
        successes: list[MutationContext] = []

        def after(data, ctx: MutationContext):
            raise ValueError("after hook")

        mutation = await client.mutate(
            lambda: "ok",
            [],
            tags=[tags["users"]],
            set_query_data_after=after,
            on_success=successes.append,
        )
        await clock.flush()

        assert mutation.errored is False
        assert mutation.data == "ok"
        assert [ctx.data for ctx in successes] == ["ok"]
        assert counter.count == 2
        assert query.data == 2
        assert "Updating query data after mutation" in caplog.text

    async def test_refresh_disabled(self, client, clock, tags, counter) -> None:
        query = client.query(counter, [], tags=[tags["users"]])
        await clock.advance(0)

        await client.mutate(
            lambda: "done",
            [],
            tags=[tags["users"]],
            set_query_data_after=lambda data, ctx: ctx.data,
            refresh_query_data=False,
        )
        await clock.flush()

        assert counter.count == 1
        assert query.data == "done"

    async def test_untagged_queries_untouched(
        self, client, clock, tags, make_counter
    ) -> None:
        users, posts = make_counter(), make_counter()
        client.query(users, [], tags=[tags["users"]])
        posts_query = client.query(posts, [], tags=[tags["posts"]])
        await clock.advance(0)

        await client.mutate(
            lambda: None,
            [],
            tags=[tags["users"]],
            set_query_data_after=lambda data, ctx: "changed",
        )
        await clock.flush()

        assert users.count == 2
        assert posts.count == 1
        assert posts_query.data == 1

    async def test_tags_derived_from_result(self, client, clock, tags) -> None:
        def get_user(user_id: int) -> dict:
            return {"id": user_id, "name": "old"}

        one = client.query(get_user, [1], tags=lambda user: [tags["user"](user)])
        two = client.query(get_user, [2], tags=lambda user: [tags["user"](user)])
        await clock.advance(0)

        def rename(user_id: int, name: str) -> dict:
            return {"id": user_id, "name": name}

        await client.mutate(
            rename,
            [2, "new"],
            tags=lambda user: [tags["user"](user)] if user else [],
            set_query_data_after=lambda user, ctx: ctx.data,
            refresh_query_data=False,
        )

        assert one.data["name"] == "old"
        assert two.data["name"] == "new"

    async def test_failure_skips_after_hook_and_refresh(
        self, client, clock, tags, counter, make_counter
    ) -> None:
        query = client.query(counter, [], tags=[tags["users"]])
        await clock.advance(0)
        after_calls: list = []

        with pytest.raises(RuntimeError):
            await client.mutate(
                make_counter(fail_times=1),
                [],
                tags=[tags["users"]],
                set_query_data_before=lambda data, ctx: "optimistic",
                set_query_data_after=lambda data, ctx: after_calls.append(data),
            )
        await clock.flush()

        assert after_calls == []
        assert counter.count == 1
        # the optimistic write is not rolled back
        assert query.data == "optimistic"
