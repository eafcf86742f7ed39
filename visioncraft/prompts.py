from textwrap import dedent


def get_advertisement_prompt(description: str, has_logo: bool) -> str:
    inputs = ["1. Product Image (Focus)."]
    if has_logo:
        inputs.append("2. Brand Logo (Apply to product).")
    inputs.append(f'{len(inputs) + 1}. Brief: "{description.strip()}"')

    directives = [
        "- Integrate the product naturally into a generated background matching the brief.",
        "- Photorealistic lighting and composition.",
    ]
    if has_logo:
        directives.append(
            "- COMPOSITE the logo onto the product surface naturally (respect geometry/lighting). Do not float it."
        )
    directives.append("- No text overlays.")

    return dedent(
        """\
        Create a high-end, aesthetic advertisement image.

        Inputs:
        {inputs}

        Directives:
        {directives}"""
    ).format(inputs="\n".join(inputs), directives="\n".join(directives))
