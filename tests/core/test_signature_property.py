"""
Property test: whatever a transformation service answers, every function keeps
its name, parameters, return annotation and async flag.
"""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from metamorph.core.strategies import ExternalTransformStrategy
from metamorph.core.tree import TreeHandler, iter_declaration_units

SOURCE = """
def plain(a, b=1):
    return a + b


async def fetch(url: str, *, timeout: float = 1.0) -> bytes:
    return b""


class Worker:
    def run(self, *args, **kwargs) -> None:
        return None
"""

BODIES = st.sampled_from(
  [
    "    return 0\n",
    "    pass\n",
    "    x = 1\n    return x\n",
    "    raise ValueError('nope')\n",
  ]
)

HEADERS = st.sampled_from(
  [
    "def plain(a, b=1):\n",
    "def plain(a):\n",
    "async def fetch(url: str, *, timeout: float = 1.0) -> bytes:\n",
    "def fetch(url: str, *, timeout: float = 1.0) -> bytes:\n",
    "def run(self, *args, **kwargs) -> None:\n",
    "def run(self) -> int:\n",
    "def renamed(a, b=1):\n",
  ]
)

ANSWERS = st.one_of(
  st.builds(lambda h, b: h + b, HEADERS, BODIES),
  st.text(alphabet=st.characters(min_codepoint=32, max_codepoint=126), max_size=40),
  st.just("```python\ndef plain(a, b=1):\n    return b + a\n```"),
)


def signatures(handler: TreeHandler, code: str):
  module = handler.parse_fragment(code)
  return [handler.signature_of(f) for f in iter_declaration_units(module)]


@settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(answers=st.lists(ANSWERS, min_size=3, max_size=3))
def test_signatures_survive_any_answer(fake_service_factory, answers):
  handler = TreeHandler()
  module = handler.parse(SOURCE)
  service = fake_service_factory(list(answers))
  outcome = ExternalTransformStrategy(handler, service, "# marked").rewrite(module)

  assert signatures(handler, outcome.tree.code) == signatures(handler, SOURCE)
