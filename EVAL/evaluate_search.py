import json
import time
import asyncio
from typing import List, Dict
import numpy as np
from farm_knowledge.engine import create_engine
from rich.console import Console
from rich.table import Table

console = Console()

def load_ground_truth(filepath: str) -> List[Dict]:
    with open(filepath, 'r') as f:
        return json.load(f)

def calculate_metrics(retrieved_ids: List[str], relevant_ids: List[str], k: int):
    # Precision@K
    retrieved_set = set(retrieved_ids[:k])
    relevant_set = set(relevant_ids)
    intersection = retrieved_set.intersection(relevant_set)
    precision = len(intersection) / k if k > 0 else 0

    # Recall@K
    recall = len(intersection) / len(relevant_set) if len(relevant_set) > 0 else 0

    # MRR: 1 / rank of first relevant record
    mrr = 0
    for i, record_id in enumerate(retrieved_ids[:k]):
        if record_id in relevant_set:
            mrr = 1 / (i + 1)
            break

    return precision, recall, mrr

async def evaluate(ground_truth_file: str = "ground_truth.json", k: int = 5):
    """
    Scores hybrid search against a ground-truth file of the form
    [{"user_id": ..., "query": ..., "relevant_records": [record ids]}].
    """
    console.print(f"[bold blue]Starting Search Evaluation (k={k})...[/bold blue]")

    try:
        ground_truth = load_ground_truth(ground_truth_file)
    except FileNotFoundError:
        console.print(f"[bold red]Error: {ground_truth_file} not found![/bold red]")
        return

    engine = create_engine()
    precisions, recalls, mrrs, latencies = [], [], [], []
    methods: Dict[str, int] = {}

    table = Table(title="Evaluation Details")
    table.add_column("Query", style="cyan", no_wrap=False)
    table.add_column("Method", style="magenta")
    table.add_column("Top 1", style="magenta")
    table.add_column("P@K", justify="right")
    table.add_column("R@K", justify="right")
    table.add_column("MRR", justify="right")
    table.add_column("Latency (s)", justify="right")

    try:
        for item in ground_truth:
            query = item['query']
            start_time = time.time()
            result = await engine.search(item['user_id'], query, item.get('filters'), limit=k)
            latency = time.time() - start_time

            retrieved_ids = [hit.item.record_id for hit in result.hits]
            precision, recall, mrr = calculate_metrics(retrieved_ids, item['relevant_records'], k)

            precisions.append(precision)
            recalls.append(recall)
            mrrs.append(mrr)
            latencies.append(latency)
            method = result.method or "none"
            methods[method] = methods.get(method, 0) + 1

            table.add_row(
                query,
                method,
                retrieved_ids[0] if retrieved_ids else "None",
                f"{precision:.2f}",
                f"{recall:.2f}",
                f"{mrr:.2f}",
                f"{latency:.3f}"
            )
    finally:
        await engine.close()

    console.print(table)
    if not precisions:
        console.print("[bold yellow]Ground truth file has no queries.[/bold yellow]")
        return

    console.print("\n[bold green]Summary Results:[/bold green]")
    console.print(f"Mean Precision@{k}: {np.mean(precisions):.4f}")
    console.print(f"Mean Recall@{k}:    {np.mean(recalls):.4f}")
    console.print(f"Mean MRR:          {np.mean(mrrs):.4f}")
    console.print(f"Avg Latency:       {np.mean(latencies):.4f}s")
    console.print(f"p95 Latency:       {np.percentile(latencies, 95):.4f}s")
    console.print(f"Search methods:    {methods}")

if __name__ == "__main__":
    asyncio.run(evaluate(k=5))
