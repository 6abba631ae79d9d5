import logging

from rich.pretty import pprint

from conso import *

__prog__ = "calc"
__styles__ = {"command-name": "bold #7DD3FC"}


def settings(ctx, flow):
    ctx.command("precision") \
        .description("Digits shown after the decimal point") \
        .constrained_arg(range(0, 10)) \
        .run(lambda digits: print("precision set to %d" % digits))
    ctx.command("back").run(flow.quit)


def shell(ctx, flow):
    ctx.command("multiply") \
        .description("Multiply two small numbers") \
        .constrained_arg(range(0, 100)) \
        .constrained_arg(range(0, 100)) \
        .run(lambda a, b: print(a * b))

    ctx.command("sum").arg(list[float]).run(lambda values: print(sum(values)))

    ctx.command("settings").description("Adjust the calculator").user_loop(settings)

    ctx.command(either("q", "quit")).run(lambda: flow.quit(0))


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO)
    pprint(describe(lambda ctx: shell(ctx, ControlFlow())).children)
    raise SystemExit(user_loop(shell, prompt="calc> ", fancy=True))
