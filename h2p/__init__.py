"""Read, analyze and randomly generate u-he ``.h2p`` synth presets."""

from .preset import (  # noqa: F401
    KeepStable,
    MetaEntry,
    ParamType,
    Preset,
    PresetParam,
    widen,
)
from .parser import (  # noqa: F401
    classify_value,
    get_preset_binary_section,
    get_preset_metadata,
    get_preset_params,
    is_int,
    is_numeric,
    is_valid_preset,
    parse_preset,
    serialize_preset,
)
from .binary_section import (  # noqa: F401
    BinarySectionError,
    ParsedBinarySection,
    binary_section_to_json,
    parse_binary_section,
)
from .analyzer import (  # noqa: F401
    ParamModelEntry,
    ParamsModel,
    analyze_params,
    dictionary_of_names,
)
from .config import (  # noqa: F401
    GenerationConfig,
    load_generation_config,
    parse_generation_config,
)
from .library import (  # noqa: F401
    EmptyLibraryError,
    PresetLibrary,
    collect_favorites_files,
    collect_library_entries,
    load_preset_library,
    write_preset_library,
)
from .randomizer import (  # noqa: F401
    MergeIncompatibleError,
    PresetNotFoundError,
    generate_fully_random_presets,
    generate_merged_presets,
    generate_randomized_presets,
    randomize_preset,
)
from .generate import GenerationResult, generate  # noqa: F401
