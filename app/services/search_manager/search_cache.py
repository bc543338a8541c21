"""
Search Cache - Cache persistente de resultados de busca.

Evita chamadas repetidas ao DuckDuckGo para queries idênticas, inclusive
entre execuções do processo: o conteúdo é salvo num arquivo JSON
`{"entries": [{"key", "ts", "value"}, ...]}` e recarregado uma vez, no
primeiro acesso.
"""

import asyncio
import copy
import json
import logging
import math
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Entrada do cache. Nunca é alterada, só substituída."""
    key: str
    ts: int  # epoch em ms
    value: Any


def build_cache_key(kind: str, normalized_query: str, limit: Optional[int] = None) -> str:
    """Gera chave determinística a partir do tipo de operação, query e limite."""
    if limit is None:
        return f"{kind}:{normalized_query}"
    return f"{kind}:{normalized_query}:{limit}"


class ResponseCache:
    """
    Cache com TTL persistido em disco.

    Features:
    - TTL configurável; entradas vencidas ficam no arquivo mas nunca são servidas
    - Carga lazy (uma vez por processo) tolerante a arquivo ausente/corrompido
    - Escritas serializadas por um único writer, rajadas agrupadas numa gravação
    - Métricas de hit/miss
    """

    def __init__(
        self,
        path: Union[str, Path] = ".cache/duckduckgo-cache.json",
        ttl_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            path: Caminho do arquivo JSON do cache
            ttl_seconds: Tempo de vida das entradas em segundos
            clock: Relógio em segundos epoch (injetável em testes)
        """
        self.path = Path(path)
        self._ttl_ms = int(ttl_seconds * 1000)
        self._clock = clock

        self._entries: Dict[str, CacheEntry] = {}
        self._loaded = False
        self._load_lock: Optional[asyncio.Lock] = None

        self._write_queue: Optional[asyncio.Queue] = None
        self._writer: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

        # Métricas
        self._hits = 0
        self._misses = 0
        self._writes = 0
        self._write_failures = 0

        logger.info(f"[Cache] path={self.path}, ttl={ttl_seconds:.0f}s")

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _is_fresh(self, entry: CacheEntry, now_ms: int) -> bool:
        return now_ms - entry.ts <= self._ttl_ms

    # ------------------------------------------------------------------
    # Carga
    # ------------------------------------------------------------------

    def _read_file(self) -> List[CacheEntry]:
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.debug(f"[Cache] Arquivo não encontrado: {self.path}")
            return []
        except (OSError, ValueError) as e:
            logger.warning(f"[Cache] Erro ao ler {self.path}, iniciando vazio: {e}")
            return []

        raw_entries = data.get("entries") if isinstance(data, dict) else None
        if not isinstance(raw_entries, list):
            logger.warning(f"[Cache] Formato inválido em {self.path}, iniciando vazio")
            return []

        entries = []
        for item in raw_entries:
            if not isinstance(item, dict):
                continue
            key, ts = item.get("key"), item.get("ts")
            if not isinstance(key, str) or not isinstance(ts, (int, float)) or isinstance(ts, bool):
                continue
            if not math.isfinite(ts):
                continue
            entries.append(CacheEntry(key=key, ts=int(ts), value=item.get("value")))
        return entries

    async def load(self) -> int:
        """
        Carrega o arquivo (no máximo uma vez por instância).

        Entradas já vencidas são descartadas. Nunca lança exceção.

        Returns:
            Número de entradas válidas carregadas
        """
        if self._loaded:
            return len(self._entries)

        if self._load_lock is None:
            self._load_lock = asyncio.Lock()

        async with self._load_lock:
            if self._loaded:
                return len(self._entries)

            entries = await asyncio.to_thread(self._read_file)
            now_ms = self._now_ms()
            loaded = 0
            for entry in entries:
                if not self._is_fresh(entry, now_ms):
                    continue
                # entradas gravadas nesta execução antes da carga prevalecem
                if entry.key not in self._entries:
                    self._entries[entry.key] = entry
                    loaded += 1

            self._loaded = True
            if loaded:
                logger.info(f"[Cache] {loaded} entradas carregadas de {self.path}")
            return loaded

    # ------------------------------------------------------------------
    # Leitura / escrita
    # ------------------------------------------------------------------

    async def lookup(self, key: str) -> Optional[Any]:
        """
        Busca uma entrada válida.

        Returns:
            Cópia do payload salvo, ou None se ausente/vencido
        """
        await self.load()

        entry = self._entries.get(key)
        if entry is None or not self._is_fresh(entry, self._now_ms()):
            self._misses += 1
            return None

        self._hits += 1
        logger.debug(f"[Cache] HIT: {key[:60]}")
        return copy.deepcopy(entry.value)

    async def store(self, key: str, value: Any) -> None:
        """Insere/substitui a entrada e agenda a persistência do cache inteiro."""
        await self.load()

        self._entries[key] = CacheEntry(key=key, ts=self._now_ms(), value=copy.deepcopy(value))
        logger.debug(f"[Cache] SET: {key[:60]}")
        self._schedule_write()

    async def invalidate(self, key: str) -> bool:
        """Remove uma entrada específica. Retorna True se existia."""
        await self.load()
        if self._entries.pop(key, None) is None:
            return False
        self._schedule_write()
        logger.debug(f"[Cache] Invalidated: {key[:60]}")
        return True

    async def clear(self) -> None:
        """Limpa todo o cache (memória e arquivo)."""
        await self.load()
        count = len(self._entries)
        self._entries.clear()
        self._schedule_write()
        logger.info(f"[Cache] Cleared: {count} entradas removidas")

    # ------------------------------------------------------------------
    # Persistência
    # ------------------------------------------------------------------

    def _snapshot(self) -> dict:
        return {
            "entries": [
                {"key": e.key, "ts": e.ts, "value": e.value}
                for e in self._entries.values()
            ]
        }

    def _ensure_writer(self) -> asyncio.Queue:
        loop = asyncio.get_running_loop()
        if self._writer is None or self._writer.done() or self._loop is not loop:
            self._write_queue = asyncio.Queue()
            self._loop = loop
            self._writer = loop.create_task(self._run_writer())
        return self._write_queue

    def _schedule_write(self) -> None:
        # só um aviso: o writer tira o snapshot na hora de gravar
        self._ensure_writer().put_nowait(None)

    def _write_file(self, snapshot: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    async def _run_writer(self) -> None:
        """
        Writer único: uma escrita por vez.

        Avisos acumulados enquanto uma escrita está em andamento são
        agrupados numa única gravação do estado mais recente.
        """
        queue = self._write_queue
        while True:
            await queue.get()
            coalesced = 1
            while not queue.empty():
                queue.get_nowait()
                coalesced += 1
            try:
                await asyncio.to_thread(self._write_file, self._snapshot())
                self._writes += 1
            except (OSError, TypeError, ValueError) as e:
                self._write_failures += 1
                logger.warning(f"[Cache] Falha ao persistir {self.path}: {e}")
            finally:
                for _ in range(coalesced):
                    queue.task_done()

    async def flush(self) -> None:
        """Aguarda todas as escritas pendentes terminarem."""
        if self._write_queue is not None and self._writer is not None and not self._writer.done():
            await self._write_queue.join()

    async def close(self) -> None:
        """Descarrega escritas pendentes e para o writer."""
        await self.flush()
        if self._writer is not None and not self._writer.done():
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
        self._writer = None

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def get_status(self) -> dict:
        """Retorna status e métricas do cache."""
        total_requests = self._hits + self._misses
        hit_rate = self._hits / total_requests if total_requests > 0 else 0

        return {
            "entries": len(self._entries),
            "loaded": self._loaded,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": f"{hit_rate:.1%}",
            "writes": self._writes,
            "write_failures": self._write_failures,
            "config": {
                "path": str(self.path),
                "ttl_seconds": self._ttl_ms / 1000,
            },
        }

    def reset_metrics(self) -> None:
        self._hits = 0
        self._misses = 0
        self._writes = 0
        self._write_failures = 0
        logger.info("[Cache] Métricas resetadas")
