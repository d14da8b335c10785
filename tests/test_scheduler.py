from i18n_llm.detector import PendingItem
from i18n_llm.engines.base import BatchError, BatchOutcome, ProviderError, TokenUsage
from i18n_llm.scheduler import attempt_batch, group_batches, run_batches


class FakeEngine:
    name = "fake"
    model = "fake-1"

    def __init__(self, batch_fails=False, drop_keys=(), fail_single=()):
        self.usage = TokenUsage()
        self.batch_fails = batch_fails
        self.drop_keys = set(drop_keys)
        self.fail_single = set(fail_single)
        self.batch_calls = []
        self.single_calls = []

    def _text(self, key, lang, is_plural):
        if is_plural:
            return {"=0": f"{lang}:none", "=1": f"{lang}:one", ">1": f"{lang}:many", "other": "drop"}
        return f"{lang}:{key}"

    def translate(self, request):
        self.single_calls.append((request.key, request.target_lang))
        if request.key in self.fail_single:
            raise ProviderError("single call failed")
        return self._text(request.key, request.target_lang, request.is_plural)

    def translate_batch(self, items, target_lang, source_lang, persona, glossary, metadata):
        self.batch_calls.append((target_lang, metadata.context, [item.key for item in items]))
        if self.batch_fails:
            raise ProviderError("HTTP 500")
        return {
            item.key: self._text(item.key, target_lang, item.is_plural)
            for item in items
            if item.key not in self.drop_keys
        }

    def review(self, *args, **kwargs):
        raise AssertionError("not used")


def _item(path, lang="fr", context=None, index=0, **kwargs):
    return PendingItem(
        state_key=f"i18n::{path}",
        schema_index=index,
        prefix="i18n",
        path=path,
        target_lang=lang,
        source_lang="en",
        description=f"describe {path}",
        reason="new",
        entity_context=context,
        context=context,
        **kwargs,
    )


def test_group_batches_by_language_schema_and_context():
    items = [
        _item("user.a", "fr", "Profile"),
        _item("user.b", "de", "Profile"),
        _item("cart.a", "fr", "Cart"),
        _item("user.c", "fr", "Profile"),
        _item("user.d", "fr", "Profile"),
    ]

    batches = group_batches(items, batch_size=2)

    assert [(b.target_lang, b.context, [i.path for i in b.items]) for b in batches] == [
        ("fr", "Profile", ["user.a", "user.c"]),
        ("fr", "Profile", ["user.d"]),
        ("de", "Profile", ["user.b"]),
        ("fr", "Cart", ["cart.a"]),
    ]


def test_attempt_batch_turns_exceptions_into_values():
    batch = group_batches([_item("user.a")], 10)[0]

    failed = attempt_batch(FakeEngine(batch_fails=True), batch)
    ok = attempt_batch(FakeEngine(), batch)

    assert isinstance(failed, BatchError)
    assert failed.keys == ("user.a",)
    assert "HTTP 500" in failed.message
    assert isinstance(ok, BatchOutcome)
    assert ok.results == {"user.a": "fr:user.a"}


def test_run_batches_accepts_results_and_checkpoints():
    engine = FakeEngine()
    results = {}
    checkpoints = []
    items = [_item("user.a"), _item("user.count", is_plural=True), _item("user.a", "de")]

    report = run_batches(
        engine,
        items,
        10,
        lambda item, text: results.__setitem__((item.path, item.target_lang), text),
        checkpoints.append,
    )

    assert results == {
        ("user.a", "fr"): "fr:user.a",
        ("user.count", "fr"): {"=0": "fr:none", "=1": "fr:one", ">1": "fr:many"},
        ("user.a", "de"): "de:user.a",
    }
    assert report.batches == 2
    assert report.calls == 2
    assert report.fallbacks == 0
    assert [b.target_lang for b in checkpoints] == ["fr", "de"]


def test_failed_batch_falls_back_to_single_calls():
    engine = FakeEngine(batch_fails=True, fail_single={"user.b"})
    generated = []
    items = [_item("user.a"), _item("user.b"), _item("user.c")]

    report = run_batches(engine, items, 10, lambda item, text: generated.append(item.path))

    assert engine.single_calls == [("user.a", "fr"), ("user.b", "fr"), ("user.c", "fr")]
    assert generated == ["user.a", "user.c"]
    assert [i.path for i in report.failed] == ["user.b"]
    assert report.fallbacks == 1
    assert report.calls == 4


def test_batch_misses_stay_pending_without_fallback():
    engine = FakeEngine(drop_keys={"user.b"})
    generated = []

    report = run_batches(engine, [_item("user.a"), _item("user.b")], 10, lambda item, text: generated.append(item.path))

    assert generated == ["user.a"]
    assert [i.path for i in report.missed] == ["user.b"]
    assert engine.single_calls == []
    assert report.failed == []


def test_accepted_results_respect_max_length():
    engine = FakeEngine()
    results = {}

    run_batches(
        engine,
        [_item("user.headline", max_length=4)],
        10,
        lambda item, text: results.__setitem__(item.path, text),
    )

    assert results == {"user.headline": "fr:u"}
