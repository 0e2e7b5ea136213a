import os
from typing import Optional

from ..settings.settings import get_data_dir


def get_models_dir() -> str:
    return os.path.join(str(get_data_dir()), "models")


def resolve_model_path(model: str) -> str:
    if os.path.isabs(model):
        return model
    return os.path.join(get_models_dir(), model)


def find_file_by_suffix(directory: str, *suffixes: str) -> Optional[str]:
    try:
        for filename in sorted(os.listdir(directory)):
            for suffix in suffixes:
                if filename.endswith(suffix):
                    return os.path.join(directory, filename)
    except OSError:
        pass
    return None


def find_file_exact(directory: str, candidates: list[str]) -> Optional[str]:
    for name in candidates:
        path = os.path.join(directory, name)
        if os.path.exists(path):
            return path
    return None


def find_tokens(model_path: str) -> Optional[str]:
    return find_file_exact(model_path, ["tokens.txt"]) or find_file_by_suffix(
        model_path, "-tokens.txt"
    )


def detect_model_type(model_path: str) -> Optional[str]:
    """
    Guess the sherpa-onnx model family from the files in a model directory.

    Returns "transducer", "whisper", "paraformer" or None.
    """
    if not os.path.isdir(model_path) or find_tokens(model_path) is None:
        return None

    if find_file_exact(
        model_path, ["joiner.onnx", "joiner.int8.onnx", "joiner.fp16.onnx"]
    ):
        return "transducer"
    if find_file_by_suffix(model_path, "-encoder.onnx", "-encoder.int8.onnx"):
        return "whisper"
    if find_file_exact(model_path, ["model.int8.onnx", "model.onnx"]):
        return "paraformer"
    return None
