from __future__ import annotations

import unittest
from pathlib import Path

from avatargen.models import TIER_WORD, Artifact, MatchResult
from avatargen.pipeline.costs import CostAccountant, format_cost
from avatargen.pipeline.prompt import IDENTITY_DIRECTIVE, ORIGINALITY_DIRECTIVE, compose_prompt

from fakes import TEST_PRICING

STYLE = "Weathered brass, soft rim light."
RESEARCH = "Brand colors: #3776AB and #FFD43B. Snake motif."

REALISM = "CRITICAL: This should be a photorealistic 3D render, exactly like the reference images."
REQUIREMENTS_TAIL = "- Square image composition"


def _matched(*names: str) -> MatchResult:
    artifacts = tuple(Artifact(name=name, path=Path(f"/refs/{name}.png"), source="reference") for name in names)
    return MatchResult(artifacts=artifacts, tier=TIER_WORD)


class TestPromptComposer(unittest.TestCase):
    def test_deterministic(self) -> None:
        first = compose_prompt("Python Optimizer", STYLE, RESEARCH, _matched("python"))
        second = compose_prompt("Python Optimizer", STYLE, RESEARCH, _matched("python"))
        self.assertEqual(first, second)

    def test_matched_concept_keeps_identity(self) -> None:
        prompt = compose_prompt("Python Optimizer", STYLE, RESEARCH, _matched("python", "rust"))
        self.assertIn(IDENTITY_DIRECTIVE, prompt)
        self.assertNotIn(ORIGINALITY_DIRECTIVE, prompt)
        self.assertIn("base robots for: python, rust.", prompt)

    def test_unique_concept_must_be_original(self) -> None:
        prompt = compose_prompt("Quantum Teapot", STYLE, RESEARCH, MatchResult())
        self.assertIn(ORIGINALITY_DIRECTIVE, prompt)
        self.assertNotIn(IDENTITY_DIRECTIVE, prompt)
        self.assertIn("ONLY the rendering quality", prompt)

    def test_section_order(self) -> None:
        prompt = compose_prompt("Quantum Teapot", STYLE, RESEARCH, MatchResult())
        positions = [
            prompt.index(REALISM),
            prompt.index("ABSOLUTELY NO TEXT"),
            prompt.index(ORIGINALITY_DIRECTIVE),
            prompt.index(STYLE),
            prompt.index("- White background"),
            prompt.index("QUANTUM TEAPOT SPECIFIC CUSTOMIZATION:\n" + RESEARCH),
            prompt.index("REMINDER: NO TEXT ON THE ROBOT"),
        ]
        self.assertEqual(positions, sorted(positions))
        self.assertIn('Do NOT write "Quantum Teapot"', prompt)

    def test_fixed_sections_do_not_depend_on_branch(self) -> None:
        matched = compose_prompt("Rust", STYLE, RESEARCH, _matched("rust"))
        unique = compose_prompt("Rust", STYLE, RESEARCH, MatchResult())
        self.assertNotEqual(matched, unique)
        self.assertEqual(_fixed_sections(matched), _fixed_sections(unique))


def _fixed_sections(text: str) -> tuple[str, str, str]:
    head = text[: text.index("CRITICAL: ", text.index(REALISM) + len(REALISM))]
    requirements = text[text.index("REQUIREMENTS:") : text.index(REQUIREMENTS_TAIL) + len(REQUIREMENTS_TAIL)]
    reminder = text[text.index("REMINDER:") :]
    return head, requirements, reminder


class TestCostAccountant(unittest.TestCase):
    def setUp(self) -> None:
        self.accountant = CostAccountant(TEST_PRICING)

    def test_reported_usage(self) -> None:
        usage = self.accountant.estimate("alpha", {"prompt_tokens": 1000, "completion_tokens": 200})
        expected = (1000 * 10.0 + 200 * 40.0 + 4160 * 40.0) / 1_000_000
        self.assertAlmostEqual(usage.estimated_cost, expected)
        self.assertFalse(usage.estimated)
        self.assertEqual(usage.total_tokens, 1200 + 4160)

    def test_missing_usage_is_estimated_never_free(self) -> None:
        usage = self.accountant.estimate("alpha", None)
        self.assertTrue(usage.estimated)
        self.assertEqual(usage.prompt_tokens, 500)
        self.assertAlmostEqual(usage.estimated_cost, (500 * 10.0 + 4160 * 40.0) / 1_000_000)

    def test_image_only_rates(self) -> None:
        usage = self.accountant.estimate("beta", {"prompt_tokens": 900, "completion_tokens": 1290})
        self.assertAlmostEqual(usage.estimated_cost, 1290 * 30.0 / 1_000_000)
        self.assertEqual(format_cost(usage.estimated_cost), "$0.0387")
        self.assertGreater(self.accountant.estimate("beta", None).estimated_cost, 0)

    def test_cached_is_zero(self) -> None:
        usage = self.accountant.cached()
        self.assertEqual(usage.estimated_cost, 0)
        self.assertEqual(format_cost(usage.estimated_cost), "$0.0000")

    def test_unknown_backend(self) -> None:
        with self.assertRaises(KeyError):
            self.accountant.estimate("nope", None)


if __name__ == "__main__":
    unittest.main()
