"""
Per-website vector collection provisioning (Qdrant).

Each registered website owns one collection named after its ``websiteId``.
"""

import logging
from typing import Optional

from qdrant_client import AsyncQdrantClient, models

from helioscribe.common.config import settings

logger = logging.getLogger(__name__)


class VectorIndexProvisioner:
    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        vector_size: int = 2560,
        timeout: int = 10,
    ):
        self.url = url
        self.api_key = api_key
        self.vector_size = vector_size
        self.timeout = timeout

    async def create_collection(self, name: str) -> None:
        """Create the collection; any client error propagates."""
        client = AsyncQdrantClient(url=self.url, api_key=self.api_key, timeout=self.timeout)
        try:
            await client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(
                    size=self.vector_size,
                    distance=models.Distance.COSINE,
                    on_disk=True,
                ),
                on_disk_payload=True,
                hnsw_config=models.HnswConfigDiff(m=16, ef_construct=100, on_disk=True),
                quantization_config=models.ScalarQuantization(
                    scalar=models.ScalarQuantizationConfig(
                        type=models.ScalarType.INT8,
                        quantile=0.99,
                        always_ram=False,
                    )
                ),
            )
            logger.info(f"✓ Qdrant collection {name} created")
        finally:
            await client.close()


_provisioner: Optional[VectorIndexProvisioner] = None


def get_vector_provisioner() -> VectorIndexProvisioner:
    global _provisioner
    if _provisioner is None:
        _provisioner = VectorIndexProvisioner(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key,
            vector_size=settings.qdrant_vector_size,
        )
    return _provisioner
