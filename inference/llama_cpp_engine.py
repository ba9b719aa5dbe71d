"""
llama.cpp engine binding.

Owns the native model through llama-cpp-python and runs the decode/sample
loop for one request at a time.

Flow per generate():
  1. Rebuild the decode context (KV-cache rewound to position 0, sampler reseeded)
  2. Tokenize the prompt (BOS + special tokens)
  3. Clamp max_tokens so prompt + output <= n_ctx - margin
  4. Decode the whole prompt in one batch
  5. Loop: sample -> stop on end-of-sequence -> token to piece -> append -> decode token

Invariants:
- Never raises out of load/generate/release
- No tokens from a previous request are ever visible to the next one
- release() frees sampler, context, model in that order, at most once
"""

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .base import InferenceEngine, clamp_max_tokens
from .handle import ModelHandle, is_live
from .types import EngineConfig

logger = logging.getLogger(__name__)

GGUF_MAGIC = b"GGUF"

# Chat-template markers some models emit instead of the EOS token.
END_OF_TURN_PIECES = ("<|end|>", "<|user|>", "<|endoftext|>", "<|im_end|>", "<|eot_id|>")


@dataclass(frozen=True)
class SamplerSettings:
    """temperature -> top-k -> top-p -> seeded final draw."""

    temperature: float
    top_k: int
    top_p: float
    seed: int


@dataclass
class DecodeContext:
    """Per-request decode state. A fresh one is built before every generate()."""

    n_ctx: int
    n_batch: int
    request_number: int
    n_past: int = 0


ModelFactory = Callable[[str, EngineConfig], Any]


def _open_llama(model_path: str, config: EngineConfig) -> Any:
    """Load a GGUF model with llama-cpp-python (CPU only, mmap on)."""
    from llama_cpp import Llama

    return Llama(
        model_path=model_path,
        n_ctx=config.n_ctx,
        n_batch=config.n_batch,
        n_threads=config.n_threads,
        n_threads_batch=config.n_threads,
        n_gpu_layers=config.n_gpu_layers,
        use_mmap=config.use_mmap,
        use_mlock=config.use_mlock,
        seed=config.seed,
        verbose=False,
    )


def _speed_verdict(tokens_per_sec: float) -> str:
    if tokens_per_sec < 1.0:
        return "VERY SLOW"
    if tokens_per_sec < 3.0:
        return "SLOW"
    if tokens_per_sec < 8.0:
        return "ACCEPTABLE"
    return "GOOD"


class LlamaCppEngine(InferenceEngine):
    """
    Engine binding backed by llama-cpp-python.

    The model factory is injectable so the generation loop can be exercised
    against an in-process fake with the same surface as ``llama_cpp.Llama``
    (tokenize, eval, sample, detokenize, token_eos, n_ctx, reset, set_seed, close).
    """

    def __init__(self, config: Optional[EngineConfig] = None, model_factory: Optional[ModelFactory] = None):
        self.config = config or EngineConfig()
        self._model_factory = model_factory or _open_llama
        self._requests = 0

    # ── load ──────────────────────────────────────────────────────────────

    def load(self, model_path: str) -> Optional[ModelHandle]:
        try:
            with open(model_path, "rb") as fh:
                magic = fh.read(len(GGUF_MAGIC))
            file_size = os.path.getsize(model_path)
        except OSError as e:
            logger.error(f"Cannot open model file {model_path}: {e}")
            return None

        if magic != GGUF_MAGIC:
            logger.error(f"Model file is not GGUF (magic={magic!r}): {model_path}")
            return None

        logger.info(f"Model file exists, size: {file_size} bytes ({file_size / 1024 / 1024:.2f} MB)")
        logger.info(
            f"Loading model: n_ctx={self.config.n_ctx}, n_batch={self.config.n_batch}, "
            f"n_threads={self.config.n_threads}, use_mmap={self.config.use_mmap}"
        )

        start = time.perf_counter()
        try:
            model = self._model_factory(model_path, self.config)
        except Exception as e:
            logger.error(f"Failed to load model after {time.perf_counter() - start:.2f}s: {e}")
            return None

        if model is None:
            logger.error("Model factory returned no model")
            return None

        sampler = SamplerSettings(
            temperature=self.config.temperature,
            top_k=self.config.top_k,
            top_p=self.config.top_p,
            seed=self.config.seed,
        )
        handle = ModelHandle(
            model=model,
            context=self._new_context(model),
            sampler=sampler,
            path=model_path,
        )
        logger.info(f"Model loaded in {time.perf_counter() - start:.2f}s: {handle!r}")
        return handle

    def _new_context(self, model: Any) -> DecodeContext:
        self._requests += 1
        n_ctx = min(self.config.n_ctx, int(model.n_ctx()))
        return DecodeContext(n_ctx=n_ctx, n_batch=self.config.n_batch, request_number=self._requests)

    def _rebuild_context(self, handle: ModelHandle) -> DecodeContext:
        """Drop the previous request's context and start from an empty KV-cache."""
        model = handle.model
        handle.context = None
        model.reset()
        model.set_seed(handle.sampler.seed)
        handle.context = self._new_context(model)
        return handle.context

    # ── generate ──────────────────────────────────────────────────────────

    def generate(self, handle: Optional[ModelHandle], prompt: str, max_tokens: int) -> str:
        if not is_live(handle):
            logger.error("generate() called with a released or empty handle")
            return ""

        model = handle.model
        sampler: SamplerSettings = handle.sampler

        try:
            ctx = self._rebuild_context(handle)
        except Exception as e:
            logger.error(f"Failed to rebuild context: {e}")
            return ""

        logger.debug(f"Prompt preview: {prompt[:100]}{'...' if len(prompt) > 100 else ''}")

        try:
            tokens = model.tokenize(prompt.encode("utf-8"), add_bos=True, special=True)
        except Exception as e:
            logger.error(f"Failed to tokenize prompt: {e}")
            return ""

        n_prompt = len(tokens)
        if n_prompt <= 0:
            logger.error(f"Tokenization produced {n_prompt} tokens")
            return ""

        budget = clamp_max_tokens(n_prompt, max_tokens, ctx.n_ctx, self.config.context_margin)
        if budget != max_tokens:
            logger.info(
                f"Prompt + max_tokens ({n_prompt} + {max_tokens}) exceeds window "
                f"{ctx.n_ctx} - {self.config.context_margin}; max_tokens clamped to {budget}"
            )
        if budget <= 0:
            logger.warning(f"Prompt of {n_prompt} tokens leaves no room to generate")
            return ""

        decode_start = time.perf_counter()
        try:
            model.eval(tokens)
        except Exception as e:
            logger.error(f"Failed to decode prompt: {e}")
            return ""
        ctx.n_past = n_prompt
        logger.debug(f"Prompt decoded: {n_prompt} tokens in {time.perf_counter() - decode_start:.2f}s")

        eos = model.token_eos()
        output = bytearray()
        n_decoded = 0
        gen_start = time.perf_counter()

        for i in range(budget):
            try:
                token = model.sample(
                    top_k=sampler.top_k,
                    top_p=sampler.top_p,
                    temp=sampler.temperature,
                )
            except Exception as e:
                logger.error(f"Sampling failed at position {i}: {e}")
                return ""

            if token == eos:
                logger.debug(f"EOS token reached at position {i}")
                break

            try:
                piece = model.detokenize([token], special=True)
            except Exception as e:
                logger.error(f"Failed to convert token to piece at position {i}: {e}")
                break

            if piece.decode("utf-8", errors="ignore").strip() in END_OF_TURN_PIECES:
                logger.debug(f"End-of-turn marker reached at position {i}")
                break

            output.extend(piece)

            try:
                model.eval([token])
            except Exception as e:
                logger.error(f"Failed to decode token at position {i}: {e}")
                return ""
            ctx.n_past += 1
            n_decoded += 1

        duration = time.perf_counter() - gen_start
        tokens_per_sec = n_decoded / duration if duration > 0 else float(n_decoded)
        logger.info(
            f"Generated {n_decoded}/{budget} tokens in {duration:.2f}s "
            f"({tokens_per_sec:.2f} tok/s, {_speed_verdict(tokens_per_sec)})"
        )

        return output.decode("utf-8", errors="ignore")

    # ── release ───────────────────────────────────────────────────────────

    def release(self, handle: Optional[ModelHandle]) -> None:
        if handle is None or not handle.invalidate():
            return

        handle.sampler = None
        handle.context = None
        model, handle.model = handle.model, None
        try:
            model.close()
        except Exception as e:
            logger.warning(f"Error while freeing model: {e}")

        logger.info(f"Model released: {handle!r}")
