from focusgroup.llm.service import UsageMetadata
from focusgroup.llm.usage import ModelTier, TokenUsage


def test_record_accumulates_by_tier():
    usage = TokenUsage()
    usage.record(UsageMetadata(input_tokens=1000, output_tokens=500, total_tokens=1500), ModelTier.FLASH)
    usage.record(UsageMetadata(input_tokens=100, output_tokens=10, total_tokens=110), ModelTier.PRO)

    assert usage.input_tokens == 1100
    assert usage.output_tokens == 510
    assert usage.total_tokens == 1610
    assert usage.api_calls == 2
    assert usage.by_tier[ModelTier.FLASH].input_tokens == 1000
    assert usage.by_tier[ModelTier.PRO].requests == 1


def test_calls_without_metadata_still_count():
    usage = TokenUsage()
    usage.record(None, ModelTier.FLASH)

    assert usage.api_calls == 1
    assert usage.total_tokens == 0


def test_estimate_cost_uses_tier_rates():
    usage = TokenUsage()
    usage.record(UsageMetadata(input_tokens=1000, output_tokens=500), ModelTier.FLASH)
    usage.record(UsageMetadata(input_tokens=100, output_tokens=10), ModelTier.PRO)

    # 1000*0.000045 + 500*0.000375 + 100*0.0003 + 10*0.0018 = 0.2805
    assert usage.estimate_cost() == 0.28
    assert usage.format_cost() == "¥0.28"


def test_snapshot_is_independent():
    usage = TokenUsage()
    usage.record(UsageMetadata(input_tokens=10, output_tokens=5), ModelTier.PRO)
    snapshot = usage.snapshot()
    usage.record(UsageMetadata(input_tokens=10, output_tokens=5), ModelTier.PRO)

    assert snapshot.api_calls == 1
    assert usage.api_calls == 2


def test_as_dict_shape():
    usage = TokenUsage()
    usage.record(UsageMetadata(input_tokens=3, output_tokens=4), ModelTier.FLASH)

    data = usage.as_dict()

    assert data["total_tokens"] == 7
    assert data["api_calls"] == 1
    assert data["by_tier"]["flash"] == {"input_tokens": 3, "output_tokens": 4, "api_calls": 1}
    assert data["by_tier"]["pro"]["api_calls"] == 0
