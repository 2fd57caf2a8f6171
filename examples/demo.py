#!/usr/bin/env python
"""
ndgrad Demo: Arrays, Graphs, and a Training Loop
================================================

Walks through broadcasting arithmetic, a single backward pass, and a
small classifier trained with plain gradient descent, resetting the graph
between steps so parameters are the only state carried over.
"""

import sys
import os

# Add parent directory to path so we can import ndgrad
parent_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, parent_dir)

import numpy as np

import ndgrad as nd
from ndgrad import nn


def demo_arrays():
    """Demo: broadcasting, matmul, reductions."""
    print("\n" + "=" * 60)
    print("ARRAYS")
    print("=" * 60)

    a = nd.from_rows([[1.0, 2.0], [3.0, 4.0]])
    b = nd.from_rows([[5.0, 6.0], [7.0, 8.0]])
    print(f"\na @ b =\n{(a @ b).numpy()}")

    col = nd.array([[1.0], [2.0], [3.0]])
    row = nd.array([[10.0, 20.0, 30.0, 40.0]])
    grid = col + row
    print(f"\n[3,1] + [1,4] -> {grid.shape}")
    print(f"row sums: {grid.sum(1).tolist()}")
    print(f"mean:     {grid.mean().item():.2f}")

    print(f"\n1 / 0 = {(nd.ones(1) / nd.zeros(1)).item()}")


def demo_backward():
    """Demo: one backward pass through a broadcast."""
    print("\n" + "=" * 60)
    print("BACKWARD")
    print("=" * 60)

    graph = nd.Graph(name="demo")
    a = graph.leaf(nd.ones(3, 1))
    b = graph.leaf(nd.ones(1, 4))
    loss = (a * b).sum()
    grads = loss.backward()

    print(f"\nloss = {loss.item()}")
    print(f"d loss / d a = {grads[a].tolist()}")
    print(f"d loss / d b = {grads[b].tolist()}")
    print(f"nodes recorded: {len(graph)}")


def demo_training(steps: int = 300, lr: float = 0.5):
    """Demo: fit a two-layer network to XOR."""
    print("\n" + "=" * 60)
    print("TRAINING (XOR)")
    print("=" * 60)

    x = nd.from_rows([[0.0, 0.0], [0.0, 1.0], [1.0, 0.0], [1.0, 1.0]])
    y = nd.array([[0.0], [1.0], [1.0], [0.0]])

    graph = nd.Graph(name="xor")
    model = nn.Sequential([
        nn.Linear(2, 8, graph, seed=0),
        nn.Tanh(),
        nn.Linear(8, 1, graph, seed=1),
        nn.Sigmoid(),
    ])
    print(f"\n{model}")

    for step in range(steps):
        graph.reset()
        pred = model(graph.input(x))
        loss = ((pred - y) ** 2).mean()
        grads = loss.backward()
        for p in model.parameters():
            p.assign(p.value - grads[p] * lr)
        if step % 50 == 0:
            print(f"  step {step:4d}  loss {loss.item():.5f}")

    with graph.no_grad():
        pred = model(graph.input(x))
    print(f"\npredictions: {np.round(pred.numpy().ravel(), 3)}")
    print(f"targets:     {y.numpy().ravel()}")


if __name__ == '__main__':
    demo_arrays()
    demo_backward()
    demo_training()
