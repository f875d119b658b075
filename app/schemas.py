# === app/schemas.py ===
from app.utils.schema_descriptors import FieldSpec, build_model

# --- /best-move input ------------------------------------------------------
POSITION_QUERY_SHAPE = {
    "fen": FieldSpec(type="string", description="FEN of the current chess position"),
    "depth": FieldSpec(
        type="string",
        min_length=1,
        max_length=2,
        default="10",
        description="depth (1-12), optional, default 10",
    ),
}

# --- stockfish.online v2 response ------------------------------------------
ANALYSIS_RESULT_SHAPE = {
    "success": FieldSpec(type="boolean", const=True),
    "evaluation": FieldSpec(type="number"),
    "bestmove": FieldSpec(type="string"),
    "mate": FieldSpec(type="number", nullable=True),
}

MIN_DEPTH = 1
MAX_DEPTH = 12

PositionQuery = build_model("PositionQuery", POSITION_QUERY_SHAPE)

# strict: no "1.5" -> 1.5 coercion on the paid response
AnalysisResult = build_model("AnalysisResult", ANALYSIS_RESULT_SHAPE, strict=True)
