"""Vocabulary-based keyword extraction for paper tags (no LLM calls)."""

from __future__ import annotations

import re
from dataclasses import dataclass

from models import Keyword

# Keywords must appear more often than this to be kept.
MIN_KEYWORD_SCORE = 5


@dataclass(frozen=True)
class KeywordRule:
    label: str
    patterns: tuple[str, ...]


KEYWORD_RULES: tuple[KeywordRule, ...] = (
    KeywordRule("Transformer", (r"\btransformers?\b",)),
    KeywordRule("Attention", (r"\battention\b",)),
    KeywordRule("Large Language Model", (r"\blarge language models?\b", r"\bllms?\b")),
    KeywordRule("Language Model", (r"\blanguage models?\b",)),
    KeywordRule("Machine Translation", (r"\bmachine translation\b", r"\bnmt\b")),
    KeywordRule("Question Answering", (r"\bquestion answering\b", r"\bqa\b")),
    KeywordRule("Summarization", (r"\bsummari[sz]ation\b",)),
    KeywordRule("Text Classification", (r"\btext classification\b",)),
    KeywordRule("Named Entity Recognition", (r"\bnamed entity recognition\b", r"\bner\b")),
    KeywordRule("Information Retrieval", (r"\binformation retrieval\b", r"\bretrieval\b")),
    KeywordRule("Retrieval-Augmented Generation", (r"\bretrieval[- ]augmented generation\b", r"\brag\b")),
    KeywordRule("Instruction Tuning", (r"\binstruction[- ]tun(?:ing|ed)\b",)),
    KeywordRule("In-Context Learning", (r"\bin[- ]context learning\b",)),
    KeywordRule("Chain-of-Thought", (r"\bchain[- ]of[- ]thought\b", r"\bcot\b")),
    KeywordRule("Reinforcement Learning", (r"\breinforcement learning\b", r"\brl\b")),
    KeywordRule("RLHF", (r"\brlhf\b", r"\breinforcement learning from human feedback\b")),
    KeywordRule("Agent", (r"\bagents?\b", r"\bagentic\b")),
    KeywordRule("Diffusion Model", (r"\bdiffusion models?\b", r"\bdenoising diffusion\b")),
    KeywordRule("Generative Adversarial Network", (r"\bgenerative adversarial networks?\b", r"\bgans?\b")),
    KeywordRule("Variational Autoencoder", (r"\bvariational auto-?encoders?\b", r"\bvaes?\b")),
    KeywordRule("Image Classification", (r"\bimage classification\b",)),
    KeywordRule("Object Detection", (r"\bobject detection\b",)),
    KeywordRule("Semantic Segmentation", (r"\bsemantic segmentation\b", r"\bsegmentation\b")),
    KeywordRule("Vision Transformer", (r"\bvision transformers?\b", r"\bvit\b")),
    KeywordRule("Convolutional Neural Network", (r"\bconvolutional neural networks?\b", r"\bcnns?\b")),
    KeywordRule("Recurrent Neural Network", (r"\brecurrent neural networks?\b", r"\brnns?\b", r"\blstms?\b")),
    KeywordRule("Graph Neural Network", (r"\bgraph neural networks?\b", r"\bgnns?\b")),
    KeywordRule("Multimodal", (r"\bmulti-?modal\b", r"\bvision[- ]language\b")),
    KeywordRule("Speech Recognition", (r"\bspeech recognition\b", r"\basr\b")),
    KeywordRule("Contrastive Learning", (r"\bcontrastive learning\b", r"\bcontrastive\b")),
    KeywordRule("Self-Supervised Learning", (r"\bself[- ]supervised\b",)),
    KeywordRule("Few-Shot Learning", (r"\bfew[- ]shot\b",)),
    KeywordRule("Zero-Shot Learning", (r"\bzero[- ]shot\b",)),
    KeywordRule("Transfer Learning", (r"\btransfer learning\b", r"\bfine[- ]tun(?:ing|ed)\b")),
    KeywordRule("Knowledge Distillation", (r"\bknowledge distillation\b", r"\bdistillation\b")),
    KeywordRule("Quantization", (r"\bquantization\b", r"\bquantized\b")),
    KeywordRule("Pruning", (r"\bpruning\b",)),
    KeywordRule("Benchmark", (r"\bbenchmarks?\b",)),
    KeywordRule("Dataset", (r"\bdatasets?\b", r"\bcorpus\b", r"\bcorpora\b")),
    KeywordRule("Embedding", (r"\bembeddings?\b",)),
    KeywordRule("Tokenization", (r"\btokeni[sz]ation\b", r"\btokeni[sz]ers?\b")),
    KeywordRule("Robustness", (r"\brobustness\b", r"\badversarial\b")),
    KeywordRule("Interpretability", (r"\binterpretability\b", r"\bexplainab(?:le|ility)\b")),
    KeywordRule("Hallucination", (r"\bhallucinations?\b",)),
    KeywordRule("Federated Learning", (r"\bfederated learning\b",)),
    KeywordRule("Optimization", (r"\boptimi[sz]ation\b", r"\boptimi[sz]ers?\b")),
    KeywordRule("Recommendation", (r"\brecommend(?:ation|er) systems?\b", r"\brecommendation\b")),
    KeywordRule("Time Series", (r"\btime[- ]series\b",)),
    KeywordRule("Code Generation", (r"\bcode generation\b",)),
    KeywordRule("Robotics", (r"\brobot(?:s|ics)?\b",)),
)


class KeywordExtractor:
    """Counts vocabulary pattern occurrences and keeps the frequent ones."""

    def __init__(
        self,
        rules: tuple[KeywordRule, ...] = KEYWORD_RULES,
        min_score: int = MIN_KEYWORD_SCORE,
    ) -> None:
        self.min_score = min_score
        self._compiled = [
            (rule.label, [re.compile(p, flags=re.IGNORECASE) for p in rule.patterns])
            for rule in rules
        ]

    def score(self, text: str) -> list[Keyword]:
        """Every vocabulary keyword present in `text`, with its occurrence count."""
        found: list[Keyword] = []
        for label, patterns in self._compiled:
            count = sum(len(pattern.findall(text)) for pattern in patterns)
            if count:
                found.append(Keyword(label=label, score=count))
        return found

    def extract(self, text: str) -> list[Keyword]:
        """Keywords scoring above `min_score`, highest score first."""
        kept = [keyword for keyword in self.score(text) if keyword.score > self.min_score]
        return sorted(kept, key=lambda k: (-k.score, k.label))
