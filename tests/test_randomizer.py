import logging
import math
from pathlib import Path
import random
import sys

import pytest

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from h2p.analyzer import ParamModelEntry, analyze_params  # noqa: E402
from h2p.config import GenerationConfig  # noqa: E402
from h2p.library import PresetLibrary  # noqa: E402
from h2p.parser import parse_preset, serialize_preset  # noqa: E402
from h2p.policy import rules_for_synth  # noqa: E402
from h2p.preset import KeepStable, MetaEntry, ParamType, Preset, PresetParam  # noqa: E402
from h2p.randomizer import (  # noqa: E402
    PresetNotFoundError,
    calculate_random_merge_ratios,
    find_base_preset,
    generate_fully_random_presets,
    generate_merged_presets,
    generate_randomized_presets,
    get_random_value,
    randomize_preset,
    round_half_up,
    truncate_decimals,
)


def _param(param_id: str, value: object, index: int = 0) -> PresetParam:
    section, key = param_id.split("/", 1)
    if isinstance(value, str):
        param_type = ParamType.STRING
    elif isinstance(value, float):
        param_type = ParamType.FLOAT
    else:
        param_type = ParamType.INTEGER
    return PresetParam(id=param_id, key=key, section=section, value=value, index=index, type=param_type)


def _preset(name: str, values: dict[str, object], *, folder: str = "/Local", binary: str | None = None) -> Preset:
    return Preset(
        file_path=f"{folder}/{name}.h2p",
        preset_name=name,
        meta=[MetaEntry("Author", "Jane"), MetaEntry("Description", f"About {name}")],
        params=[_param(pid, value, i) for i, (pid, value) in enumerate(values.items())],
        binary=binary,
    )


def _library(presets: list[Preset]) -> PresetLibrary:
    return PresetLibrary(synth="Diva", root_folder="/r", user_presets_folder="/u", presets=presets)


def _entry(values: list[object], param_type: ParamType, keep_stable: KeepStable | None = None) -> ParamModelEntry:
    return ParamModelEntry(
        type=param_type,
        values=values,
        distinct_values=list(dict.fromkeys(values)),
        keep_stable=keep_stable,
    )


@pytest.fixture
def sources() -> list[Preset]:
    return [
        _preset("Alpha", {"VCF1/Cutoff": 10, "VCF1/Env": 0.25, "OSC1/Wave": "Saw", "VCC/Trsp": 0}),
        _preset("Bravo", {"VCF1/Cutoff": 40, "VCF1/Env": 0.5, "OSC1/Wave": "Square", "VCC/Trsp": -12}),
        _preset("Charlie", {"VCF1/Cutoff": 90, "VCF1/Env": 0.75, "OSC1/Wave": "Noise", "VCC/Trsp": 12}),
    ]


def test_integer_blend_rounds_half_up() -> None:
    base = _preset("Base", {"VCF1/Res": 0})
    model = {"VCF1/Res": _entry([100], ParamType.INTEGER)}
    out = randomize_preset(base, model, GenerationConfig(randomness=50))
    assert out.params[0].value == 50
    assert out.params[0].type is ParamType.INTEGER


def test_float_blend_truncates_to_two_decimals() -> None:
    base = _preset("Base", {"VCF1/Env": 0.0})
    model = {"VCF1/Env": _entry([1.0], ParamType.FLOAT)}
    out = randomize_preset(base, model, GenerationConfig(randomness=60))
    assert out.params[0].value == 0.6


def test_mixed_types_blend_independently() -> None:
    base = _preset("Base", {"VCF1/Res": 0, "VCF1/Env": 0.0})
    model = {
        "VCF1/Res": _entry([100], ParamType.INTEGER),
        "VCF1/Env": _entry([1.0], ParamType.FLOAT),
    }
    out = randomize_preset(base, model, GenerationConfig(randomness=60))
    assert [p.value for p in out.params] == [60, 0.6]


@pytest.mark.parametrize(("value", "expected"), [(2.5, 3), (2.4999, 2), (-2.5, -2), (7.0, 7)])
def test_round_half_up(value: float, expected: int) -> None:
    assert round_half_up(value) == expected


@pytest.mark.parametrize(("value", "expected"), [(0.6, 0.6), (0.29, 0.29), (1.239, 1.23), (-1.239, -1.23)])
def test_truncate_decimals(value: float, expected: float) -> None:
    assert truncate_decimals(value) == expected


def test_zero_randomness_changes_nothing(sources: list[Preset]) -> None:
    model = analyze_params(sources)
    config = GenerationConfig(randomness=0)
    for _ in range(20):
        out = randomize_preset(sources[1], model, config)
        assert [p.value for p in out.params] == [p.value for p in sources[1].params]


def test_full_randomness_takes_drawn_values(sources: list[Preset]) -> None:
    model = analyze_params(sources)
    for randomness in (100, 250):
        out = randomize_preset(sources[0], model, GenerationConfig(randomness=randomness))
        for param in out.params:
            assert param.value in model[param.id].distinct_values


def test_always_tagged_params_never_change(sources: list[Preset]) -> None:
    model = analyze_params(sources, rules=rules_for_synth("Diva"))
    assert model["VCC/Trsp"].keep_stable is KeepStable.ALWAYS
    for _ in range(20):
        out = randomize_preset(sources[1], model, GenerationConfig(randomness=100))
        assert out.param_by_id("VCC/Trsp").value == -12


def test_stable_mode_skips_strings_and_binary_choices() -> None:
    base = _preset("Base", {"OSC1/Wave": "Saw", "OSC1/Sync": 0, "VCF1/Cutoff": 10})
    model = {
        "OSC1/Wave": _entry(["Saw", "Square", "Noise"], ParamType.STRING),
        "OSC1/Sync": _entry([0, 1], ParamType.INTEGER),
        "VCF1/Cutoff": _entry([50, 60, 70], ParamType.INTEGER),
        "VCF1/Mode": _entry([1, 2, 3], ParamType.INTEGER, KeepStable.STABLE_MODE),
    }
    base.params.append(_param("VCF1/Mode", 1, 3))
    for _ in range(20):
        out = randomize_preset(base, model, GenerationConfig(randomness=100, stable=True))
        values = {p.id: p.value for p in out.params}
        assert values["OSC1/Wave"] == "Saw"
        assert values["OSC1/Sync"] == 0
        assert values["VCF1/Mode"] == 1
        assert values["VCF1/Cutoff"] in (50, 60, 70)


def test_randomize_preset_does_not_touch_source(sources: list[Preset]) -> None:
    model = analyze_params(sources)
    before = [p.value for p in sources[0].params]
    randomize_preset(sources[0], model, GenerationConfig(randomness=100))
    assert [p.value for p in sources[0].params] == before


def test_params_missing_from_model_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    base = _preset("Base", {"VCF1/Res": 0, "VCF1/Ghost": 5})
    model = {"VCF1/Res": _entry([100], ParamType.INTEGER)}
    with caplog.at_level(logging.ERROR, logger="h2p.randomizer"):
        out = randomize_preset(base, model, GenerationConfig(randomness=50))
    assert out.param_by_id("VCF1/Ghost").value == 5
    assert "VCF1/Ghost" in caplog.text


def test_string_replacement_probability_follows_randomness() -> None:
    base = _preset("Base", {"OSC1/Wave": "Saw"})
    model = {"OSC1/Wave": _entry(["Noise"], ParamType.STRING)}
    config = GenerationConfig(randomness=30)
    replaced = sum(
        randomize_preset(base, model, config).params[0].value == "Noise" for _ in range(2000)
    )
    assert 450 < replaced < 750


def test_get_random_value_weighting() -> None:
    entry = _entry([1] * 99 + [2], ParamType.INTEGER)
    weighted = sum(get_random_value(entry) == 2 for _ in range(2000))
    creative = sum(get_random_value(entry, creative=True) == 2 for _ in range(2000))
    assert weighted < 100
    assert 800 < creative < 1200
    assert get_random_value(_entry([], ParamType.STRING)) is None


@pytest.mark.parametrize("amount", [1, 2, 5, 40])
def test_merge_ratios_sum_to_one(amount: int) -> None:
    for _ in range(50):
        ratios = calculate_random_merge_ratios(amount)
        assert len(ratios) == amount
        assert all(0 < r <= 1 for r in ratios)
        assert math.isclose(sum(ratios), 1.0, abs_tol=1e-10)


def test_merge_ratios_need_one_preset() -> None:
    with pytest.raises(ValueError, match="amount must be >= 1"):
        calculate_random_merge_ratios(0)


def test_find_base_preset(sources: list[Preset]) -> None:
    library = _library(sources)
    assert find_base_preset(library, "Brav").preset_name == "Bravo"
    assert find_base_preset(library, "?charlie").preset_name == "Charlie"
    assert find_base_preset(library, "?") in sources
    assert find_base_preset(library, None) in sources
    assert find_base_preset(library, "Zulu") is None
    assert find_base_preset(library, "?zulu") is None


def test_fully_random_presets(sources: list[Preset]) -> None:
    library = _library(sources)
    model = analyze_params(sources, rules=rules_for_synth("Diva"))
    out = generate_fully_random_presets(library, model, GenerationConfig(amount=12))

    assert out.user_presets_folder == str(Path("/u") / "RANDOM")
    assert len(out.presets) == 12
    assert len(library.presets) == 3
    assert len({p.file_path.lower() for p in out.presets}) == 12
    for preset in out.presets:
        assert preset.file_path.startswith("/Fully Random/RND ")
        assert preset.file_path.endswith(".h2p")
        assert preset.preset_name == Path(preset.file_path).stem
        # Three words, plus a counter when the name was already taken.
        assert len(preset.preset_name.split(" ")) in (4, 5)
        assert preset.meta_value("Author") == "Random Generator"
        assert "Fully randomized preset." in preset.meta_value("Description")
        assert preset.meta_value("Categories") is None
        for param in preset.params:
            assert param.value in model[param.id].distinct_values


def test_fully_random_category_and_dictionary(sources: list[Preset]) -> None:
    library = _library(sources)
    model = analyze_params(sources)
    config = GenerationConfig(amount=5, category="Bass:Sub", dictionary=True)
    out = generate_fully_random_presets(library, model, config)

    for preset in out.presets:
        folder, name = preset.file_path.rsplit("/", 1)
        assert folder == "/Fully Random/Bass Sub"
        words = name[: -len(".h2p")].split(" ")
        assert words[0] == "RND"
        if len(words) == 5:
            assert words.pop().isdigit()
        assert set(words[1:]) <= {"Alpha", "Bravo", "Charlie"}
        assert preset.categories == ["Bass:Sub"]
        assert preset.meta_value("Categories") == "Bass:Sub"
        assert "Bass:Sub" in preset.meta_value("Description")


def test_stable_fully_random_copies_sections_from_one_donor(sources: list[Preset]) -> None:
    library = _library(sources)
    model = analyze_params(sources)
    combos = {
        (p.param_by_id("VCF1/Cutoff").value, p.param_by_id("VCF1/Env").value) for p in sources
    }
    out = generate_fully_random_presets(library, model, GenerationConfig(amount=30, stable=True))
    for preset in out.presets:
        combo = (preset.param_by_id("VCF1/Cutoff").value, preset.param_by_id("VCF1/Env").value)
        assert combo in combos


def test_binary_sections_are_swapped_from_pool() -> None:
    presets = [
        _preset("A", {"VCF1/Cutoff": 1}, binary="bin-a"),
        _preset("B", {"VCF1/Cutoff": 2}, binary="bin-b"),
        _preset("C", {"VCF1/Cutoff": 3}),
    ]
    model = analyze_params(presets)
    out = generate_fully_random_presets(_library(presets), model, GenerationConfig(amount=30, binary=True))
    assert {p.binary for p in out.presets} <= {"bin-a", "bin-b"}

    plain = [_preset("C", {"VCF1/Cutoff": 3})]
    out = generate_fully_random_presets(
        _library(plain), analyze_params(plain), GenerationConfig(amount=3, binary=True)
    )
    assert [p.binary for p in out.presets] == [None, None, None]


def test_randomized_presets_share_amount_across_bases(sources: list[Preset]) -> None:
    library = _library(sources)
    model = analyze_params(sources)
    config = GenerationConfig(preset=("Alpha", "Charlie"), amount=5, randomness=40)
    out = generate_randomized_presets(library, model, config)

    assert len(out.presets) == 5
    bases = [p.file_path.split("/")[2] for p in out.presets]
    assert bases == ["Alpha", "Alpha", "Alpha", "Charlie", "Charlie"]
    first = out.presets[0]
    assert first.file_path.startswith("/Randomized Preset/Alpha/RND ")
    assert first.preset_name.endswith(" Alpha")
    assert len(first.preset_name.split(" ")) == 4
    assert first.meta_value("Author") == "Jane"
    assert first.meta_value("Description").startswith("About Alpha. Variation of Alpha.")


def test_randomized_presets_default_to_random_base(sources: list[Preset]) -> None:
    out = generate_randomized_presets(_library(sources), analyze_params(sources), GenerationConfig(preset=("?",)))
    assert len(out.presets) == 8
    assert len({p.file_path.split("/")[2] for p in out.presets}) == 1


def test_randomized_presets_unknown_selector(sources: list[Preset]) -> None:
    config = GenerationConfig(preset=("Alpha", "Zulu"))
    with pytest.raises(PresetNotFoundError, match="Zulu"):
        generate_randomized_presets(_library(sources), analyze_params(sources), config)


def test_generation_uses_shared_random_module(sources: list[Preset]) -> None:
    library = _library(sources)
    model = analyze_params(sources)
    config = GenerationConfig(amount=4)

    random.seed(1234)
    first = generate_fully_random_presets(library, model, config)
    random.seed(1234)
    second = generate_fully_random_presets(library, model, config)
    assert [p.file_path for p in first.presets] == [p.file_path for p in second.presets]
    assert [[q.value for q in p.params] for p in first.presets] == [
        [q.value for q in p.params] for p in second.presets
    ]


def test_whole_float_blend_is_typed_as_integer() -> None:
    base = _preset("Base", {"VCF1/Env": 0.0})
    model = {"VCF1/Env": _entry([1.0], ParamType.FLOAT)}
    out = randomize_preset(base, model, GenerationConfig(randomness=100))
    assert out.params[0].value == 1
    assert out.params[0].type is ParamType.INTEGER


def test_colliding_generated_names_get_counters() -> None:
    twins = [
        _preset("Ocean", {"VCF1/Cutoff": 10, "VCF1/Env": 0.25}, folder="/Local"),
        _preset("Ocean", {"VCF1/Cutoff": 40, "VCF1/Env": 0.5}, folder="/User"),
    ]
    library = _library(twins)
    model = analyze_params(twins)

    out = generate_fully_random_presets(library, model, GenerationConfig(amount=4, dictionary=True))
    assert [p.preset_name for p in out.presets] == [
        "RND Ocean Ocean Ocean",
        "RND Ocean Ocean Ocean 2",
        "RND Ocean Ocean Ocean 3",
        "RND Ocean Ocean Ocean 4",
    ]
    assert out.presets[3].file_path == "/Fully Random/RND Ocean Ocean Ocean 4.h2p"

    config = GenerationConfig(preset=("Ocean",), amount=3, dictionary=True)
    out = generate_randomized_presets(library, model, config)
    assert [p.file_path for p in out.presets] == [
        "/Randomized Preset/Ocean/RND Ocean Ocean Ocean.h2p",
        "/Randomized Preset/Ocean/RND Ocean Ocean Ocean 2.h2p",
        "/Randomized Preset/Ocean/RND Ocean Ocean Ocean 3.h2p",
    ]

    config = GenerationConfig(merge=("*Ocean",), amount=2, dictionary=True)
    out = generate_merged_presets(library, model, config)
    assert len({p.file_path for p in out.presets}) == 2


def test_generated_preset_survives_serialization(sources: list[Preset]) -> None:
    library = _library(sources)
    model = analyze_params(sources)
    config = GenerationConfig(amount=3, category="Bass:Sub")
    for preset in generate_fully_random_presets(library, model, config).presets:
        again = parse_preset(serialize_preset(preset), preset.file_path)
        assert again.meta == preset.meta
        assert again.categories == ["Bass:Sub"]
        assert [(p.key, p.value, p.type) for p in again.params] == [
            (p.key, p.value, p.type) for p in preset.params
        ]
