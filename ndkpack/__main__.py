#
# Copyright 2024 zhlinh and ndkpack Project Authors. All rights reserved.
# Use of this source code is governed by a MIT-style
# license that can be found at
#
# https://opensource.org/license/MIT
#
# The above copyright notice and this permission
# notice shall be included in all copies or
# substantial portions of the Software.

from ndkpack.cli import main

if __name__ == "__main__":
    main()
