"""Built-in enum definitions served by the CMS.

Each entry follows ``{"name", "displayName", "datas": [{"code", "name",
"displayName", "enumName"}]}``. The ``enumName`` values are the ones stored in
the database and accepted by filters.
"""


def _enum(key, *items):
    return {
        "name": key,
        "displayName": key,
        "datas": [
            {"code": code, "name": name, "displayName": name, "enumName": enum_name}
            for code, name, enum_name in items
        ],
    }


ENUM_DEFINITIONS = {
    "BizStatusEnums": _enum(
        "BizStatusEnums",
        (0, "Draft", "DRAFT"), (1, "Enabled", "ENABLED"), (2, "Disabled", "DISABLED")),
    "BizCategoryGroupEnums": _enum(
        "BizCategoryGroupEnums",
        (1, "Group A", "GROUPA"), (2, "Group B", "GROUPB"), (3, "Group C", "GROUPC"),
        (4, "Group D", "GROUPD"), (5, "Group E", "GROUPE"), (6, "Group F", "GROUPF"),
        (7, "Group G", "GROUPG")),
    "BizExerciseDifficultyEnums": _enum(
        "BizExerciseDifficultyEnums",
        (1, "Beginner", "BEGINNER"), (2, "Intermediate", "INTERMEDIATE"), (3, "Advanced", "ADVANCED")),
    "BizExerciseEquipmentEnums": _enum(
        "BizExerciseEquipmentEnums",
        (1, "No equipment", "NO_EQUIPMENT"), (2, "Chair", "CHAIR")),
    "BizExerciseGenderEnums": _enum(
        "BizExerciseGenderEnums",
        (1, "Female", "FEMALE"), (2, "Male", "MALE")),
    "BizExerciseInjuredEnums": _enum(
        "BizExerciseInjuredEnums",
        (1, "Shoulder", "SHOULDER"), (2, "Back", "BACK"), (3, "Wrist", "WRIST"), (4, "Knee", "KNEE"),
        (5, "Ankle", "ANKLE"), (6, "Hip", "HIP"), (0, "None", "NONE")),
    "BizExercisePositionEnums": _enum(
        "BizExercisePositionEnums",
        (1, "Standing", "STANDING"), (2, "Seated", "SEATED")),
    "BizExerciseStructureTypeEnums": _enum(
        "BizExerciseStructureTypeEnums",
        (1, "Warm Up", "WARM_UP"), (2, "Main", "MAIN"), (3, "Cool Down", "COOL_DOWN")),
    "BizGenerateTaskStatusEnums": _enum(
        "BizGenerateTaskStatusEnums",
        (0, "Waiting", "WAITING"), (1, "Processing", "PROCESSING"), (2, "Successful", "SUCCESSFUL"),
        (3, "Failed", "FAILED")),
    "BizPlaylistTypeEnums": _enum(
        "BizPlaylistTypeEnums",
        (1, "Regular", "REGULAR"), (2, "Yoga", "YOGA"), (3, "Dance", "DANCE")),
    "BizProgramEquipmentEnums": _enum(
        "BizProgramEquipmentEnums",
        (1, "Dumbbells", "DUMBBELLS"), (2, "Resistance band", "RESISTANCE_BAND"), (0, "None", "NONE")),
    "BizProgramShowTypeEnums": _enum(
        "BizProgramShowTypeEnums",
        (1, "Horizontal", "HORIZONTAL"), (2, "Card", "CARD")),
    "BizResourceApplicationEnums": _enum(
        "BizResourceApplicationEnums",
        (1, "Plan", "PLAN"), (2, "Workout", "WORKOUT")),
    "BizSoundGenderEnums": _enum(
        "BizSoundGenderEnums",
        (1, "Female", "FEMALE"), (2, "Male", "MALE"), (3, "Female and male", "FEMALE_AND_MALE")),
    "BizSoundUsageEnums": _enum(
        "BizSoundUsageEnums",
        (1, "Flow", "FLOW"), (2, "General", "GENERAL")),
    "BizTemplateDurationEnums": _enum(
        "BizTemplateDurationEnums",
        (1, "5-10 min", "MIN_5_10"), (2, "10-15 min", "MIN_10_15"), (3, "15-20 min", "MIN_15_20"),
        (4, "20-30 min", "MIN_20_30")),
    "BizWorkoutSettingsVideoCycleEnums": _enum(
        "BizWorkoutSettingsVideoCycleEnums",
        (1, "Front to side", "FRONT_TO_SIDE"), (2, "Side to front", "SIDE_TO_FRONT")),
}
