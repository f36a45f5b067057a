"""Round-trips and error handling of the function text format."""

import io

import numpy as np
import pytest

from termsum import (
    AutoDiffTerm,
    FormatMismatch,
    Function,
    GreaterThan,
    IncompatibleBuild,
    LinearTerm,
    Rosenbrock,
    SquaredDistance,
    SumOfSquares,
    TermFactory,
    UnsupportedOperation,
)
from termsum.io import (
    MAGIC,
    build_fingerprint,
    dump_function,
    dumps,
    load_function,
    loads,
    read_function,
    write_function,
)


def bowl(x, y):
    return (x[0] - 1) ** 2 + (y[0] + 2) ** 2


def build():
    a = np.array([0.1, 0.2])
    b = np.array([1.0 / 3.0, -2.5])
    s = np.array([0.7])
    t = np.array([1e-300])
    c = np.array([5.0, 6.0])
    f = Function(number_of_threads=1)
    f.add_term(SquaredDistance(2), a, b)
    f.add_term(LinearTerm([1.5, -0.25]), c)
    f.add_term(Rosenbrock(), s, t)
    f.add_term(AutoDiffTerm(bowl, 1, 1), t, s)
    f.add_term(SumOfSquares(2, scale=0.125), b)
    f.set_constant(c)
    f.constant = 0.1
    return f


def test_round_trip_reproduces_function():
    f = build()
    text = dumps(f)
    g, user_space = loads(text)
    g.set_number_of_threads(1)

    assert g.get_number_of_scalars() == f.get_number_of_scalars() == 6
    assert g.get_number_of_constants() == f.get_number_of_constants() == 2
    assert g.get_number_of_terms() == 5
    assert g.constant == 0.1
    assert user_space.shape == (8,)
    np.testing.assert_array_equal(user_space[6:], [5.0, 6.0])

    point = f.copy_user_to_global()
    np.testing.assert_array_equal(g.copy_user_to_global(), point)
    value_f, grad_f, hess_f = f.evaluate_with_hessian(point)
    value_g, grad_g, hess_g = g.evaluate_with_hessian(point)
    assert value_g == value_f
    np.testing.assert_array_equal(grad_g, grad_f)
    np.testing.assert_array_equal(hess_g, hess_f)

    # Term records survive unchanged, so writing again gives the same text.
    assert dumps(g) == text


def test_term_records_use_global_offsets():
    f = build()
    lines = dumps(f).splitlines()
    assert lines[0] == MAGIC
    assert lines[1] == "1"
    assert lines[2] == build_fingerprint()
    assert lines[3:8] == ["5", "5", "6", "2", "0.1"]
    assert lines[8] == "0 2 2 2 4 1 5 1 6 2"
    assert lines[10:13] == ["SquaredDistance", "2", "0 2"]


def test_read_from_stream_replaces_contents():
    f = build()
    buffer = io.StringIO()
    f.write_to_stream(buffer)
    buffer.seek(0)

    g = Function(number_of_threads=1)
    g.add_term(SumOfSquares(1), np.zeros(1))
    user_space = g.read_from_stream(buffer)
    assert g.get_number_of_terms() == 5
    assert user_space.size == 8
    assert g.evaluate() == pytest.approx(f.evaluate())

    user_space[0] += 1.0
    assert g.evaluate() != pytest.approx(f.evaluate())


def test_file_round_trip(tmp_path):
    f = build()
    path = tmp_path / "function.txt"
    dump_function(f, str(path))
    g, _ = load_function(str(path))
    assert g.evaluate() == pytest.approx(f.evaluate())


def test_empty_function_round_trip():
    f = Function(number_of_threads=1)
    f.constant = -2.0
    g, user_space = loads(dumps(f))
    assert user_space.size == 0
    assert g.evaluate() == -2.0


def test_floats_round_trip_exactly():
    x = np.array([0.1, 1.0 / 3.0, 1e-310, -np.pi, 2.0**60])
    f = Function(number_of_threads=1)
    f.add_term(SumOfSquares(5), x)
    _, user_space = loads(dumps(f))
    np.testing.assert_array_equal(user_space, x)


def test_change_of_variables_cannot_be_written():
    x = np.array([2.0])
    f = Function(number_of_threads=1)
    f.add_variable(x, change_of_variables=GreaterThan(1))
    f.add_term(SumOfSquares(1), x)
    with pytest.raises(UnsupportedOperation):
        write_function(f, io.StringIO())


def test_bad_header():
    with pytest.raises(FormatMismatch):
        loads("something::else\n1\n")
    text = dumps(build()).replace(MAGIC + "\n1\n", MAGIC + "\n99\n", 1)
    with pytest.raises(FormatMismatch, match="version"):
        loads(text)


def test_incompatible_build():
    text = dumps(build()).replace(build_fingerprint(), "float32-24-big", 1)
    with pytest.raises(IncompatibleBuild):
        loads(text)


def test_truncated_stream_names_field():
    text = dumps(build())
    with pytest.raises(FormatMismatch, match="Reading scalar value failed"):
        loads("\n".join(text.splitlines()[:9]))
    with pytest.raises(FormatMismatch, match="number of terms"):
        loads("\n".join(text.splitlines()[:3]))


def test_corrupt_offsets():
    lines = dumps(build()).splitlines()
    lines[8] = "0 2 3 2 4 1 5 1 6 2"
    with pytest.raises(FormatMismatch, match="offsets"):
        loads("\n".join(lines))


def test_unknown_term_type():
    with pytest.raises(FormatMismatch, match="Unknown term type"):
        read_function(io.StringIO(dumps(build())), factory=TermFactory())
