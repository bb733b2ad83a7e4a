import sys
import typing
from typing import Any

from ape.utils import ZERO_ADDRESS
from eth_utils import to_hex


def _abort(stage: str) -> None:
    print(f"Aborting deployment at '{stage}'!")
    sys.exit(-1)


def _ask(question: str, stage: str) -> None:
    answer = input(f"{question} Y/N? ")
    if answer.lower().strip() == "n":
        _abort(stage)


def _display(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    return str(value)


def confirm_stage(stage: str, arguments: "typing.OrderedDict[str, Any]") -> None:
    """
    Shows the resolved arguments of a deploy or configure stage and asks to go
    ahead with it. Arguments that resolved to the zero address need a second yes.
    """
    if arguments:
        print(f"\n{stage}")
        for name, value in arguments.items():
            print(f"\t{name}={_display(value)}")
    else:
        print(f"\n{stage} (no arguments)")
    _ask(f"Proceed with {stage}", stage)

    zero_args = [name for name, value in arguments.items() if value == ZERO_ADDRESS]
    if zero_args:
        _ask(f"{', '.join(zero_args)} resolved to the zero address; continue", stage)
