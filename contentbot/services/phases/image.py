# contentbot/services/phases/image.py
from contentbot.services.artifacts import CoverImageArtifact, GenerationArtifacts, GenerationInputs
from contentbot.services.image_client import ImageClient


async def run_image(inputs: GenerationInputs, artifacts: GenerationArtifacts, *, images: ImageClient) -> CoverImageArtifact:
    query = inputs.keywords[0] if inputs.keywords else inputs.title
    found = await images.find_cover(query)
    # no image is still a completed phase
    return found or CoverImageArtifact(image_alt=inputs.title)
