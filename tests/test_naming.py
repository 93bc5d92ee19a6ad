from jxldec.naming import derive_filename, digits


def test_single_frame_single_layer_unchanged():
    assert derive_filename("out.png", ".png", 0, 0, 1, 1) == "out.png"


def test_frame_suffix_two_digit_pad():
    assert derive_filename("out.png", ".png", 0, 3, 1, 12) == "out.png-03.png"


def test_extra_channel_suffix_one_digit_pad():
    assert derive_filename("out.png", ".png", 2, 0, 5, 1) == "out.png-ec2.png"
    assert derive_filename("out.png", ".png", 0, 0, 5, 1) == "out.png"


def test_ppm_extra_channels_become_pgm():
    assert derive_filename("out.ppm", ".ppm", 1, 0, 2, 1) == "out.ppm-ec1.pgm"
    assert derive_filename("out.ppm", ".ppm", 1, 2, 2, 3) == "out.ppm-2-ec1.pgm"
    assert derive_filename("out.ppm", ".ppm", 0, 2, 2, 3) == "out.ppm-2.ppm"


def test_stdout_is_never_renamed():
    assert derive_filename("-", ".ppm", 3, 7, 4, 10) == "-"


def test_digits():
    assert [digits(n) for n in (1, 9, 10, 12, 99, 100, 1000)] == [1, 1, 2, 2, 2, 3, 4]


def test_names_unique_over_grid():
    for nl in (1, 2, 5, 11):
        for nf in (1, 3, 10, 12):
            names = {derive_filename("o.png", ".png", i, j, nl, nf)
                     for i in range(nl) for j in range(nf)}
            assert len(names) == nl * nf
