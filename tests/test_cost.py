from narrator.schemas.narration import ModelId
from narrator.services.cost import estimate_cost, estimate_tokens


def test_estimate_tokens_rounds_up():
    assert estimate_tokens("") == 0
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2


def test_estimate_cost_uses_model_pricing():
    text = "x" * 4_000_000

    flash = estimate_cost(text, ModelId.FLASH)
    pro = estimate_cost(text, ModelId.PRO)

    assert flash.characters == 4_000_000
    assert flash.tokens == 1_000_000
    assert flash.cost_usd == 0.10
    assert pro.cost_usd == 1.25
    assert flash.currency == "USD"
    assert pro.model is ModelId.PRO
